"""Background workers: change-feed consumer and outbox relay."""

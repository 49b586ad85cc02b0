"""Player records and the write-side operations that drive the pipeline."""

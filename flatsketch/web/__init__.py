"""HTTP surface — FastAPI app over the job pipeline and vision client."""

"""survey_server — FastAPI server exposing the survey engine over HTTP."""

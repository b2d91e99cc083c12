"""EduTasker Core HTTP API."""

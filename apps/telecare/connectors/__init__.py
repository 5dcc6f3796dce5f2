"""Clients for external systems (MongoDB, Cloudinary, Gemini)."""

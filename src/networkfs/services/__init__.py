"""Business logic for the NetworkFilesystem controller."""

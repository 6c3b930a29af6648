"""Intent API — HTTP front door for creating and deleting App resources."""

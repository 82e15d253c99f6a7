"""External task worker: engine client, topic workers and supervisor."""

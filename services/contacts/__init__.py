"""Contact finder services: cache, email validation, intelligence, jobs, worker."""

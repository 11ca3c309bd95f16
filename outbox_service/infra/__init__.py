"""Infrastructure: storage backends, queue publisher, logging."""

"""Infrastructure Layer: concrete storage backends, configuration and logging."""

"""Service layer: key namespace, storage backends, resolution, delivery and session gate."""

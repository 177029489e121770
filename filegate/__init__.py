"""File-hosting gateway: uploads, multi-backend storage resolution and gated delivery."""

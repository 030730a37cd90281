"""Call credit bundles and purchases."""

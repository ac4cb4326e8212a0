"""HTTP interface: landing page, health check and metrics endpoint."""

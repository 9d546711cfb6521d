"""HTTP routes: WebSub callback and worker status."""

# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, root URLconf and the WSGI application. Payment processing runs
# inside the request cycle, so there is no task-queue app to load here.
# =============================================================================

"""
Middleware to add cache control headers to API responses
"""


class NoCacheMiddleware:
    """
    Add cache-control headers to API responses so that standings and match
    results are never served stale by the browser after a confirmation.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if request.path.startswith("/api/"):
            response["Cache-Control"] = "no-cache, no-store, must-revalidate, max-age=0"
            response["Pragma"] = "no-cache"
            response["Expires"] = "0"

        return response

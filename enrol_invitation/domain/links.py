from urllib.parse import urlencode


class LinkBuilder:
    """Builds absolute site URLs from a base URL and query parameters."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def build(self, path: str, **params: object) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {k: v for k, v in params.items() if v is not None}
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def site_url(self) -> str:
        return f"{self.base_url}/"

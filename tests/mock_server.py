"""Mock gallery website for integration tests.

Pages:
- /gallery: titled "Gallery", one large PNG, one small PNG and a few links
  (root-relative, page-relative, absolute, and a duplicate).
- /empty: titled "Empty", no images, one link.
- /pixel.png: a 1x1 PNG, displayed at whatever size the page asks for.
"""

import base64

from aiohttp import web

PIXEL_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PIXEL_PNG = base64.b64decode(PIXEL_PNG_BASE64)

GALLERY_HTML = """<!DOCTYPE html>
<html>
<head><title>Gallery</title></head>
<body>
  <img src="/pixel.png" width="400" height="320" alt="large">
  <img src="/pixel.png?icon" width="16" height="16" alt="icon">
  <a href="/about">About</a>
  <a href="contact.html">Contact</a>
  <a href="https://example.com/outside">Outside</a>
  <a href="/about">About again</a>
</body>
</html>
"""

EMPTY_HTML = """<!DOCTYPE html>
<html>
<head><title>Empty</title></head>
<body>
  <p>Nothing to see.</p>
  <a href="/about">About</a>
</body>
</html>
"""


async def handle_gallery(request: web.Request) -> web.Response:
    return web.Response(text=GALLERY_HTML, content_type="text/html")


async def handle_empty(request: web.Request) -> web.Response:
    return web.Response(text=EMPTY_HTML, content_type="text/html")


async def handle_pixel(request: web.Request) -> web.Response:
    return web.Response(body=PIXEL_PNG, content_type="image/png")


def create_app() -> web.Application:
    """Create the aiohttp application with all routes.

    Returns:
        Configured aiohttp Application.
    """
    app = web.Application()
    app.router.add_get("/gallery", handle_gallery)
    app.router.add_get("/empty", handle_empty)
    app.router.add_get("/pixel.png", handle_pixel)
    return app

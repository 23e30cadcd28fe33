"""HTML rendering for the folder viewer page.

Each file is rendered according to its MIME type:
    - image/*            -> <img>
    - video/*            -> <video> with a <source>
    - text/* or *json*   -> <pre> filled client-side from the file URL
    - application/pdf    -> <embed>
    - anything else      -> download link

All values coming from uploaders are escaped before substitution.
"""
import html
import re
from pathlib import Path

from .schemas import FileDescriptor, FolderRecord

# HTML template directory
TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER = re.compile(r"\{\{ (title|expire_at|content) \}\}")


def render_file(descriptor: FileDescriptor) -> str:
    url = html.escape(descriptor.url, quote=True)
    title = html.escape(descriptor.title, quote=True)
    mime_type = descriptor.mime_type

    if mime_type.startswith("image/"):
        body = f'<img src="{url}" alt="{title}" class="media">'
    elif mime_type.startswith("video/"):
        body = (
            f'<video controls class="media">'
            f'<source src="{url}" type="{html.escape(mime_type, quote=True)}">'
            f"</video>"
        )
    elif mime_type.startswith("text/") or "json" in mime_type:
        body = f'<pre class="text-preview" data-src="{url}">Loading...</pre>'
    elif mime_type == "application/pdf":
        body = f'<embed src="{url}" type="application/pdf" class="pdf">'
    else:
        body = f'<a href="{url}" target="_blank" rel="noopener">Download {title}</a>'

    return f'<div class="file">{body}</div>'


def render_folder(record: FolderRecord) -> str:
    """Render the viewer page for a published folder."""
    template = (TEMPLATES_DIR / "viewer.html").read_text(encoding="utf-8")
    content = "\n".join(render_file(f) for f in record.files)

    values = {
        "title": html.escape(record.title),
        "expire_at": record.expire_at.strftime("%Y-%m-%d %H:%M UTC"),
        "content": content,
    }
    # One pass, so substituted text is never scanned for placeholders again.
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)

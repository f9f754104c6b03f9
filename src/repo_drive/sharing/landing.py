"""HTML landing page for a shared file.

Presentation only. Every interpolated value is HTML-escaped, and the
page links to the content proxy with the same issuer and token. The
record's credential is never passed to the template.
"""

from __future__ import annotations

import html
from datetime import datetime

from .model import ShareLinkRecord

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta name="robots" content="noindex">
<title>{file_name} · Shared file</title>
<style>
  body {{ font-family: system-ui, sans-serif; background: #f5f6f8; margin: 0; }}
  main {{ max-width: 640px; margin: 4rem auto; background: #fff; padding: 2rem;
         border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,.12); }}
  h1 {{ font-size: 1.4rem; word-break: break-all; }}
  dl {{ display: grid; grid-template-columns: max-content 1fr; gap: .4rem 1rem; }}
  dt {{ color: #666; }}
  .actions a {{ display: inline-block; margin-right: .8rem; padding: .5rem 1rem;
               border-radius: 4px; background: #2563eb; color: #fff; text-decoration: none; }}
  .actions a.secondary {{ background: #e5e7eb; color: #111; }}
  #preview {{ margin-top: 1.5rem; }}
  #preview img, #preview iframe, #preview video {{ max-width: 100%; }}
</style>
</head>
<body>
<main>
  <h1>{file_name}</h1>
  <dl>
    <dt>Repository</dt><dd>{owner}/{repo} ({branch})</dd>
    <dt>Path</dt><dd>{file_path}</dd>
    <dt>Shared by</dt><dd>{issuer}</dd>
    <dt>Expires</dt><dd><time datetime="{expires_iso}">{expires_human}</time></dd>
  </dl>
  <p class="actions">
    <a href="{preview_href}" target="_blank" rel="noopener">Preview</a>
    <a class="secondary" href="{download_href}">Download</a>
  </p>
  <section id="preview">{preview_block}</section>
</main>
</body>
</html>
"""

_IMAGE_TYPES = ('image/',)
_FRAME_TYPES = ('application/pdf', 'text/')
_MEDIA_TYPES = ('video/', 'audio/')


def content_href(issuer_segment: str, token: str, *, download: bool) -> str:
    """Relative link to the content proxy for this token."""
    flag = 'true' if download else 'false'
    return f'/share/{issuer_segment}/{token}/download?download={flag}'


def _preview_block(content_type: str, href: str, file_name: str) -> str:
    """Embed tag for previewable types. Takes raw values and escapes them here."""
    src, label = html.escape(href), html.escape(file_name)
    if content_type.startswith(_IMAGE_TYPES):
        return f'<img src="{src}" alt="{label}">'
    if content_type.startswith(_MEDIA_TYPES):
        tag = 'video' if content_type.startswith('video/') else 'audio'
        return f'<{tag} src="{src}" controls></{tag}>'
    if content_type.startswith(_FRAME_TYPES):
        return f'<iframe src="{src}" title="{label}" width="100%" height="480"></iframe>'
    return ''


def _format_expiry(expires_at: datetime) -> str:
    return expires_at.strftime('%Y-%m-%d %H:%M UTC')


def render_landing_page(
    record: ShareLinkRecord,
    *,
    issuer_segment: str,
    token: str,
    content_type: str,
) -> str:
    """Render the landing page for an active link."""
    esc = html.escape
    preview_href = content_href(issuer_segment, token, download=False)
    return _PAGE.format(
        file_name=esc(record.file_name),
        owner=esc(record.owner),
        repo=esc(record.repo),
        branch=esc(record.branch),
        file_path=esc(record.file_path),
        issuer=esc(record.issuer),
        expires_iso=esc(record.expires_at.isoformat()),
        expires_human=esc(_format_expiry(record.expires_at)),
        preview_href=esc(preview_href),
        download_href=esc(content_href(issuer_segment, token, download=True)),
        preview_block=_preview_block(content_type, preview_href, record.file_name),
    )

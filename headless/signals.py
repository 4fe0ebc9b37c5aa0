from blinker import Namespace

_signals = Namespace()

# Sent after /api/revalidate-cache cleared the caches; kwargs: paths, tags.
# Connect a receiver to purge a CDN or other downstream caches.
content_revalidated = _signals.signal("content-revalidated")

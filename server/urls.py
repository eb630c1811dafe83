"""URL configuration.

Only the Django admin is routed here; the drive operations are exposed to
the transport layer as plain Python functions in ``server.apps.*.logic``.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]

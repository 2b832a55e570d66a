from django.urls import re_path

from . import consumers

UUID_PATTERN = r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'

websocket_urlpatterns = [
    re_path(r'^ws/deals/$', consumers.DealFeedConsumer.as_asgi()),
    re_path(rf'^ws/deals/(?P<deal_id>{UUID_PATTERN})/$', consumers.DealFeedConsumer.as_asgi()),
]

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from .utils import ALL_TABLES_GROUP, table_group_name

logger = logging.getLogger("channels")


class TableStatusConsumer(AsyncWebsocketConsumer):
    """
    Live table status feed for floor displays.

    Staff join their company's group; an unscoped superadmin joins the
    group that receives every company's updates.
    """

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4001)
            logger.warning("Table feed connect refused (unauthenticated)")
            return

        group = await self._group_for(user)
        if group is None:
            await self.close(code=4003)
            logger.warning(f"Table feed connect refused for {user.username} (no profile)")
            return

        self.group_name = group
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"Table feed connected: {user.username} -> {self.group_name}")

    async def disconnect(self, code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def table_update(self, event):
        try:
            await self.send(text_data=json.dumps(event["data"]))
        except Exception as exc:
            logger.error(f"{self.__class__.__name__} failed to send data: {exc}")

    @database_sync_to_async
    def _group_for(self, user):
        profile = getattr(user, "profile", None)
        if profile is None or not profile.active:
            return None
        if profile.company_id:
            return table_group_name(profile.company_id)
        if profile.is_superadmin:
            return ALL_TABLES_GROUP
        return None

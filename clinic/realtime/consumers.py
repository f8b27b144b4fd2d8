import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from clinic.models import DoctorClinic
from clinic.services import accounts
from clinic.services.appointments import queue_group

QUEUE_ROLES = ('clinic', 'receptionist', 'nurse', 'doctor', 'admin')


@database_sync_to_async
def may_join_queue(user, clinic_id: int) -> bool:
    """Admins may watch any clinic; doctors their linked clinics; clinic staff their own."""
    if not user.is_authenticated or getattr(user, "role", None) not in QUEUE_ROLES:
        return False
    if user.role == "admin":
        return True
    if user.role == "doctor":
        doctor_id = accounts.role_id(user, "doctor_id")
        return bool(doctor_id) and DoctorClinic.objects.filter(doctor_id=doctor_id, clinic_id=clinic_id).exists()
    return accounts.role_id(user, "clinic_id") == clinic_id


class QueueConsumer(AsyncWebsocketConsumer):
    """Pushes appointment status changes for one clinic's waiting room."""

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        self.clinic_id = self.scope["url_route"]["kwargs"]["clinic_id"]
        if not await may_join_queue(user, self.clinic_id):
            await self.close(code=4003)
            return
        self.group_name = queue_group(self.clinic_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "clinicId": self.clinic_id}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    # group_send {"type": "queue.update", ...}
    async def queue_update(self, event):
        await self.send(json.dumps(event))

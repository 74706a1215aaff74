"""Overdue-task reminder pipeline (scanner, queue client, registry, dispatcher).

The scanner and the dispatcher are independent asyncio loops that only talk
through the RabbitMQ ``TaskReminders`` queue and the task store. The dispatcher
fans notifications out to live WebSocket sessions tracked by the registry.
"""

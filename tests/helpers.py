# tests/helpers.py

from cqroute.core.meta import Meta


class FakeSender:
    def __init__(self):
        self.sent = []

    async def send_private_msg(self, user_id, message):
        self.sent.append(("private", user_id, message))
        return len(self.sent)

    async def send_group_msg(self, group_id, message):
        self.sent.append(("group", group_id, message))
        return len(self.sent)

    async def send_discuss_msg(self, discuss_id, message):
        self.sent.append(("discuss", discuss_id, message))
        return len(self.sent)


class Replies:
    """Synchronous stand-in for a bound reply function."""

    def __init__(self):
        self.messages = []

    def __call__(self, message):
        self.messages.append(message)
        return message


class Recorder:
    def __init__(self):
        self.calls = []

    def handler(self, *args):
        self.calls.append(args)


def make_meta(path, message="", **fields):
    meta = Meta(message=message, **fields)
    meta.path = path
    meta.send = Replies()
    return meta

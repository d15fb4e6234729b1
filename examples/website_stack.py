"""Example: a static website bucket, a seeding task and a Lambda API.

Run with ``python examples/website_stack.py [commit|uncommit|template|status]``.
Settings are read from ``stackur.yaml`` in the working directory.
"""

import asyncio
import json

from stackur import Bucket, Function, Settings, Stack, Tag, Task
from stackur.cli import run

TAGS = [Tag("project", "website")]

HANDLER = """
import json

def handler(event, context):
    return {"statusCode": 200, "body": json.dumps({"ok": True})}
"""


class WebsiteStack(Stack):
    """Website bucket, populated by a task, plus a small API function."""

    async def setup(self):
        self.site = Bucket(
            self,
            "Site",
            website_configuration={"IndexDocument": "index.html"},
            tags=TAGS
        )

        # Runs after the bucket exists, so its physical name is known
        Task(self, "upload-index", self.upload_index)

        self.api = Function(
            self,
            "Api",
            code={"ZipFile": HANDLER},
            handler="index.handler",
            environment={"Variables": {"SITE_BUCKET": {"Ref": "Site"}}},
            tags=TAGS
        )

    async def upload_index(self):
        client = self.object_store.client
        body = "<html><body><h1>Deployed with stackur</h1></body></html>"
        await asyncio.to_thread(
            client.put_object,
            Bucket=self.site.bucket_name, Key="index.html", Body=body, ContentType="text/html"
        )
        print(f"✓ Uploaded index.html to {self.site.bucket_name}")

    async def destroy(self):
        print(f"✓ Removed website resources: {json.dumps(self.physical_ids())}")


def build_stack(settings: Settings) -> Stack:
    """Build the stack from stackur.yaml settings."""
    return WebsiteStack.from_settings(settings.stack_name or "Website", settings)


if __name__ == '__main__':
    run(build_stack)

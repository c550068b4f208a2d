import os
import time

import pytest

from appservice import arm
from appservice.build_log import BuildLog
from appservice.credentials import CredentialStore

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION") != "1",
    reason="Integration tests disabled (set RUN_INTEGRATION=1)",
)


@pytest.fixture
def store():
    return CredentialStore(mode=os.getenv("AZURE_CREDENTIALS_MODE", "local"))


def test_verify_configuration(store):
    result = arm.verify_configuration(store.get_credential(), store.subscription_id(), timeout=30)
    assert result == arm.OP_SUCCESS


def test_webapp_template_provisions(store):
    resource_group = os.getenv("AZURE_TEST_RESOURCE_GROUP")
    if not resource_group:
        pytest.skip("AZURE_TEST_RESOURCE_GROUP not set")

    client = arm.resource_client(store.get_credential(), store.subscription_id())
    suffix = str(int(time.time()))

    def configure(template):
        arm.validate_and_add_field_value("string", f"it-site-{suffix}", "siteName", "siteName is required.", template)
        arm.validate_and_add_field_value("string", f"it-plan-{suffix}", "hostingPlanName", None, template)
        arm.validate_and_add_field_value("int", "1", "skuCapacity", None, template)

    name = arm.deploy(client, resource_group, "webapp.json", configure)
    assert arm.monitor(client, resource_group, name, BuildLog("integration"), interval=15) is True

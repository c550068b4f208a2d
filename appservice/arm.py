# appservice/arm.py
"""ARM template deployments.

Plain functions over an explicit ``ResourceManagementClient``: submit an
embedded template, then block while polling its operations until every
resource has provisioned or one of them failed.
"""
import json
import time
from enum import Enum
from importlib import resources
from typing import Any, Callable, List, Optional, Tuple

from azure.core.exceptions import AzureError
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import Deployment, DeploymentMode, DeploymentProperties
from loguru import logger

from .build_log import BuildLog
from .exceptions import (
    AppServiceDeployError,
    CloudOperationError,
    InvalidArgumentError,
    MissingFieldError,
    OperationFetchError,
)
from .metrics import ARM_DEPLOYMENT_COUNTER, ARM_POLL_COUNTER
from .schemas import DeploymentOperation

POLL_INTERVAL = 30
OP_SUCCESS = "Success"
TEMPLATE_PACKAGE = "appservice.templates"

STATE_SUCCEEDED = "succeeded"
STATE_FAILED = "failed"
STATE_CANCELED = "canceled"


class MonitorState(str, Enum):
    PENDING = "Pending"
    POLLING = "Polling"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


def resource_client(credential, subscription_id: str) -> ResourceManagementClient:
    return ResourceManagementClient(credential, subscription_id)


def load_template(name: str) -> dict:
    """Parse an embedded template shipped in ``appservice/templates``."""
    text = resources.files(TEMPLATE_PACKAGE).joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


def deploy(
    client: Any,
    resource_group: str,
    template_name: str,
    configure_template: Callable[[dict], None],
) -> str:
    """Submit ``template_name`` as an incremental deployment into ``resource_group``.

    ``configure_template`` receives the parsed template and fills in its
    parameters in place. Returns the deployment name (epoch milliseconds),
    which ``monitor`` needs to find the deployment's operations.
    """
    if not resource_group or not resource_group.strip():
        raise InvalidArgumentError("Resource group name is required.")

    try:
        logger.info(f"Use embedded deployment template {template_name}")
        template = load_template(template_name)
        configure_template(template)

        deployment_name = str(int(time.time() * 1000))
        properties = DeploymentProperties(mode=DeploymentMode.INCREMENTAL, template=template)
        client.deployments.begin_create_or_update(
            resource_group_name=resource_group,
            deployment_name=deployment_name,
            parameters=Deployment(properties=properties),
        )
        logger.info(f"Submitted deployment {deployment_name} to {resource_group}")
        return deployment_name
    except AppServiceDeployError:
        raise
    except Exception as e:
        logger.exception(f"Unable to deploy {template_name}: {e}")
        raise CloudOperationError(f"Unable to deploy {template_name}", e) from e


def validate_and_add_field_value(
    type_: str,
    field_value: Optional[str],
    field_name: str,
    error_message: Optional[str],
    template: dict,
) -> None:
    """Set ``parameters.<field_name>`` to ``{type, defaultValue}``.

    A blank value raises MissingFieldError when ``error_message`` is given
    and leaves the template untouched otherwise.
    """
    if field_value and field_value.strip():
        if type_ == "int":
            try:
                default: Any = int(field_value.strip())
            except ValueError as e:
                raise InvalidArgumentError(f"{field_name} must be an integer, got {field_value!r}") from e
        else:
            default = field_value
        template.setdefault("parameters", {})[field_name] = {"type": type_, "defaultValue": default}
    elif error_message and error_message.strip():
        raise MissingFieldError(error_message)
    else:
        logger.debug(f"No value for optional parameter {field_name}")


def fetch_operations(client: Any, resource_group: str, deployment_name: str) -> List[DeploymentOperation]:
    try:
        return [
            DeploymentOperation.from_sdk(op)
            for op in client.deployment_operations.list(resource_group, deployment_name)
        ]
    except (AzureError, ValueError, OSError) as e:
        raise OperationFetchError(f"Failed getting deployment operations: {e}") from e


def evaluate_operations(
    operations: List[DeploymentOperation], build_log: BuildLog
) -> Tuple[MonitorState, int]:
    """Classify one poll's operations.

    Returns FAILED on the first canceled or failed operation without looking
    at the rest, SUCCEEDED once nothing is outstanding, POLLING otherwise.
    """
    outstanding = len(operations)
    for op in operations:
        state = op.provisioning_state
        described = f"{op.resource_type}:{op.resource_name}"
        if state.lower() in (STATE_CANCELED, STATE_FAILED):
            build_log.log_error(f"Failed({state}): {described}")
            return MonitorState.FAILED, outstanding
        elif state.lower() == STATE_SUCCEEDED:
            build_log.log_status(f"Succeeded({state}): {described}")
            outstanding -= 1
        else:
            build_log.log_status(f"To Be Completed({state}): {described}")

    if outstanding == 0:
        return MonitorState.SUCCEEDED, 0
    return MonitorState.POLLING, outstanding


def monitor(
    client: Any,
    resource_group: str,
    deployment_name: str,
    build_log: BuildLog,
    interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Block until the deployment's operations all succeed (True) or one fails (False).

    A failed operation listing ends monitoring with False; it is not retried.
    """
    state = MonitorState.PENDING
    logger.debug(f"Monitoring {resource_group}/{deployment_name} ({state.value})")
    while True:
        sleep(interval)
        ARM_POLL_COUNTER.inc()

        try:
            operations = fetch_operations(client, resource_group, deployment_name)
        except OperationFetchError as e:
            build_log.log_error(str(e))
            ARM_DEPLOYMENT_COUNTER.labels(outcome="fetch_failed").inc()
            return False

        state, outstanding = evaluate_operations(operations, build_log)
        if state is MonitorState.FAILED:
            ARM_DEPLOYMENT_COUNTER.labels(outcome="failed").inc()
            return False
        if state is MonitorState.SUCCEEDED:
            ARM_DEPLOYMENT_COUNTER.labels(outcome="succeeded").inc()
            logger.success(f"Deployment {deployment_name} completed")
            return True
        logger.debug(f"{outstanding} operation(s) outstanding in {deployment_name}")


def verify_configuration(credential, subscription_id: str, timeout: int = 30) -> str:
    """Check the credentials can reach the subscription.

    Returns ``OP_SUCCESS`` or a ``"Failure: ..."`` message.
    """
    try:
        client = resource_client(credential, subscription_id)
        next(iter(client.resource_groups.list(top=1, connection_timeout=timeout, read_timeout=timeout)), None)
        return OP_SUCCESS
    except Exception as e:
        logger.error(f"Error validating configuration: {e}")
        return f"Failure: Exception occurred while validating subscription configuration {e}"

# appservice/webapp.py
"""Handle on one App Service web app, backed by ``azure-mgmt-web``."""
from typing import Any, Optional
from xml.etree import ElementTree

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.mgmt.web.models import CsmPublishingProfileOptions, SiteConfigResource, StringDictionary
from loguru import logger

from .exceptions import CloudOperationError, SlotNotFoundError
from .schemas import DockerBuildInfo, PublishingProfile

JAVA_LINUX_RUNTIMES = ("JAVA|", "TOMCAT|", "JBOSSEAP|")


def parse_publishing_profile(xml: bytes) -> PublishingProfile:
    """Parse App Service publish settings into a PublishingProfile.

    The Git endpoint is the Kudu site behind the MSDeploy profile.
    """
    root = ElementTree.fromstring(xml)
    profiles = {p.get("publishMethod", "").upper(): p for p in root.iter("publishProfile")}
    ftp = profiles.get("FTP")
    msdeploy = profiles.get("MSDEPLOY")
    if ftp is None or msdeploy is None:
        raise CloudOperationError("Publishing profile is missing the FTP or MSDeploy entry")

    scm_host = msdeploy.get("publishUrl", "").split(":")[0]
    site = msdeploy.get("msdeploySite", "").split("__")[0]
    return PublishingProfile(
        ftp_url=ftp.get("publishUrl", ""),
        ftp_username=ftp.get("userName", ""),
        ftp_password=ftp.get("userPWD", ""),
        git_url=f"https://{scm_host}:443/{site}.git",
        git_username=msdeploy.get("userName", ""),
        git_password=msdeploy.get("userPWD", ""),
    )


class WebApp:
    def __init__(self, client: Any, resource_group: str, name: str):
        self.client = client
        self.resource_group = resource_group
        self.name = name

    @classmethod
    def from_credentials(cls, credential, subscription_id: str, resource_group: str, name: str) -> "WebApp":
        from azure.mgmt.web import WebSiteManagementClient

        return cls(WebSiteManagementClient(credential, subscription_id), resource_group, name)

    def __repr__(self):
        return f"<WebApp {self.resource_group}/{self.name}>"

    def configuration(self, slot: Optional[str] = None):
        try:
            if slot:
                return self.client.web_apps.get_configuration_slot(self.resource_group, self.name, slot)
            return self.client.web_apps.get_configuration(self.resource_group, self.name)
        except AzureError as e:
            raise CloudOperationError(f"Failed to read configuration of {self.name}", e) from e

    def is_java(self) -> bool:
        config = self.configuration()
        if getattr(config, "java_version", None):
            return True
        linux_fx = (getattr(config, "linux_fx_version", None) or "").upper()
        return linux_fx.startswith(JAVA_LINUX_RUNTIMES)

    def slot_exists(self, slot_name: str) -> bool:
        try:
            self.client.web_apps.get_slot(self.resource_group, self.name, slot_name)
            return True
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise CloudOperationError(f"Failed to look up slot {slot_name}", e) from e

    def get_publishing_profile(self, slot: Optional[str] = None) -> PublishingProfile:
        if slot and not self.slot_exists(slot):
            raise SlotNotFoundError(slot)

        options = CsmPublishingProfileOptions(format="Ftp")
        try:
            if slot:
                chunks = self.client.web_apps.list_publishing_profile_xml_with_secrets_slot(
                    resource_group_name=self.resource_group,
                    name=self.name,
                    slot=slot,
                    publishing_profile_options=options,
                )
            else:
                chunks = self.client.web_apps.list_publishing_profile_xml_with_secrets(
                    resource_group_name=self.resource_group,
                    name=self.name,
                    publishing_profile_options=options,
                )
            xml = b"".join(chunks)
        except AzureError as e:
            raise CloudOperationError(f"Failed to get publishing profile of {self.name}", e) from e

        try:
            return parse_publishing_profile(xml)
        except ElementTree.ParseError as e:
            raise CloudOperationError("Publishing profile is not valid XML", e) from e

    def update_docker_image(self, info: DockerBuildInfo, slot: Optional[str] = None):
        """Point the app (or slot) at the pushed image and its registry."""
        web_apps = self.client.web_apps
        site_config = SiteConfigResource(linux_fx_version=f"DOCKER|{info.image_reference}")
        try:
            if slot:
                current = web_apps.list_application_settings_slot(self.resource_group, self.name, slot)
            else:
                current = web_apps.list_application_settings(self.resource_group, self.name)

            settings = dict(current.properties or {})
            settings["DOCKER_REGISTRY_SERVER_URL"] = info.registry_server_url
            if info.registry_username:
                settings["DOCKER_REGISTRY_SERVER_USERNAME"] = info.registry_username
                settings["DOCKER_REGISTRY_SERVER_PASSWORD"] = info.registry_password or ""
            app_settings = StringDictionary(properties=settings)

            if slot:
                web_apps.update_configuration_slot(self.resource_group, self.name, slot, site_config)
                web_apps.update_application_settings_slot(self.resource_group, self.name, slot, app_settings)
            else:
                web_apps.update_configuration(self.resource_group, self.name, site_config)
                web_apps.update_application_settings(self.resource_group, self.name, app_settings)
        except AzureError as e:
            raise CloudOperationError(f"Failed to update docker image of {self.name}", e) from e

        logger.info(f"{self.name}{'/' + slot if slot else ''} now runs {info.image_reference}")

"""
Instance actions component - admin links and icons for invitation instances.
"""

from enrol_invitation.domain.links import LinkBuilder
from enrol_invitation.rules.models import Rules

from .component import InstanceActions
from .models import ActionLink, ActionPaths, Icon, NavigationNode, PluginTraits
from .ports import PolicyPort


def create_instance_actions(rules: Rules, policy: PolicyPort) -> InstanceActions:
    """Build InstanceActions from the loaded rules."""
    return InstanceActions(
        policy=policy,
        links=LinkBuilder(rules.site.url),
        paths=ActionPaths.from_rules(rules.invitation),
    )


__all__ = [
    "InstanceActions",
    "create_instance_actions",
    "ActionLink",
    "ActionPaths",
    "Icon",
    "NavigationNode",
    "PluginTraits",
    "PolicyPort",
]

"""Host-provided modules.

Packages listed here ship with the runtime that executes the artifacts
(Expo Go). They are never built, and they are left as externals in every
bundle.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

HOST_PROVIDED_PACKAGES: frozenset[str] = frozenset(
    {
        # Core
        "react",
        "react-dom",
        "react-native",
        "expo",
        "expo-modules-core",
        # Expo SDK
        "expo-application",
        "expo-asset",
        "expo-auth-session",
        "expo-av",
        "expo-barcode-scanner",
        "expo-battery",
        "expo-blur",
        "expo-brightness",
        "expo-build-properties",
        "expo-calendar",
        "expo-camera",
        "expo-cellular",
        "expo-clipboard",
        "expo-constants",
        "expo-contacts",
        "expo-crypto",
        "expo-dev-client",
        "expo-device",
        "expo-document-picker",
        "expo-file-system",
        "expo-font",
        "expo-gl",
        "expo-haptics",
        "expo-image",
        "expo-image-manipulator",
        "expo-image-picker",
        "expo-intent-launcher",
        "expo-json-utils",
        "expo-keep-awake",
        "expo-linear-gradient",
        "expo-linking",
        "expo-local-authentication",
        "expo-localization",
        "expo-location",
        "expo-mail-composer",
        "expo-manifests",
        "expo-media-library",
        "expo-network",
        "expo-notifications",
        "expo-print",
        "expo-router",
        "expo-screen-capture",
        "expo-screen-orientation",
        "expo-secure-store",
        "expo-sensors",
        "expo-sharing",
        "expo-sms",
        "expo-speech",
        "expo-splash-screen",
        "expo-sqlite",
        "expo-status-bar",
        "expo-store-review",
        "expo-structured-headers",
        "expo-system-ui",
        "expo-task-manager",
        "expo-tracking-transparency",
        "expo-updates",
        "expo-video-thumbnails",
        "expo-web-browser",
        "@expo/react-native-action-sheet",
        "@expo/vector-icons",
        # React Navigation
        "@react-navigation/bottom-tabs",
        "@react-navigation/drawer",
        "@react-navigation/elements",
        "@react-navigation/material-top-tabs",
        "@react-navigation/native",
        "@react-navigation/native-stack",
        "@react-navigation/routers",
        "@react-navigation/stack",
        # Native modules
        "@gorhom/bottom-sheet",
        "@react-native-async-storage/async-storage",
        "@react-native-community/datetimepicker",
        "@react-native-community/netinfo",
        "@react-native-community/slider",
        "@react-native-masked-view/masked-view",
        "@react-native-picker/picker",
        "@react-native-segmented-control/segmented-control",
        "@sentry/react-native",
        "@shopify/flash-list",
        "@stripe/stripe-react-native",
        "lottie-react-native",
        "moti",
        "react-freeze",
        "react-native-blob-util",
        "react-native-drawer-layout",
        "react-native-fs",
        "react-native-gesture-handler",
        "react-native-maps",
        "react-native-pager-view",
        "react-native-pdf",
        "react-native-reanimated",
        "react-native-reanimated-carousel",
        "react-native-safe-area-context",
        "react-native-screens",
        "react-native-svg",
        "react-native-svg-transformer",
        "react-native-tab-view",
        "react-native-view-shot",
        "react-native-webview",
    }
)

# Module patterns always left external by the bundler
HOST_PROVIDED_PATTERNS: tuple[str, ...] = (
    "react",
    "react-dom",
    "react-native",
    "expo",
    "expo-*",
    "@expo/*",
    "@react-navigation/*",
)


def is_host_provided(name: str) -> bool:
    """Return True if the package is in the host-provided set."""
    return name in HOST_PROVIDED_PACKAGES


def matches_external_pattern(name: str) -> bool:
    """Return True if a module name matches a host-provided pattern."""
    return any(fnmatchcase(name, pattern) for pattern in HOST_PROVIDED_PATTERNS)


def bundle_externals() -> list[str]:
    """Return every module name or pattern to leave out of bundles.

    Individual names already covered by a pattern are omitted.
    """
    names = {
        name for name in HOST_PROVIDED_PACKAGES if not matches_external_pattern(name)
    }
    return [*HOST_PROVIDED_PATTERNS, *sorted(names)]


__all__ = [
    "HOST_PROVIDED_PACKAGES",
    "HOST_PROVIDED_PATTERNS",
    "bundle_externals",
    "is_host_provided",
    "matches_external_pattern",
]

from typing import Optional

# Ícono por defecto cuando el nombre guardado no está en el mapa
DEFAULT_ICON = "FileText"

# Nombres de íconos que el frontend sabe dibujar
ICON_MAP = {
    "Accessibility": "Accessibility",
    "Award": "Award",
    "Bell": "Bell",
    "BookOpen": "BookOpen",
    "Building": "Building",
    "ClipboardList": "ClipboardList",
    "FileCheck": "FileCheck",
    "FileText": "FileText",
    "Files": "Files",
    "FolderTree": "FolderTree",
    "GraduationCap": "GraduationCap",
    "History": "History",
    "LayoutDashboard": "LayoutDashboard",
    "Newspaper": "Newspaper",
    "Palette": "Palette",
    "ScrollText": "ScrollText",
    "Settings": "Settings",
    "Shield": "Shield",
    "User": "User",
    "UserCog": "UserCog",
    "Users": "Users",
}


def resolve_icon(name: Optional[str]) -> str:
    """Devuelve el ícono registrado para `name` o el ícono por defecto."""
    if not name:
        return DEFAULT_ICON
    return ICON_MAP.get(name, DEFAULT_ICON)

"""Console theming for mtc.

A single City Lights based rich ``Theme`` shared by every command.
"""

import logging
from typing import Dict

from rich.console import Console
from rich.theme import Theme

from .items import ItemKind

logger = logging.getLogger(__name__)


CITY_LIGHTS_COLORS = {
    'surface_light': '#41505E',
    'primary': '#68D5F3',
    'secondary': '#5CCFE6',
    'accent': '#B7C5D3',
    'success': '#8BD649',
    'warning': '#FFD93D',
    'error': '#F78C6C',
    'critical': '#FF5370',
    'text_primary': '#B7C5D3',
    'text_muted': '#4F5B66',
    'text_bright': '#FFFFFF',
}

MTC_THEME = Theme({
    'default': f"{CITY_LIGHTS_COLORS['text_primary']}",
    'muted': f"{CITY_LIGHTS_COLORS['text_muted']}",
    'bright': f"{CITY_LIGHTS_COLORS['text_bright']} bold",
    'success': f"{CITY_LIGHTS_COLORS['success']} bold",
    'warning': f"{CITY_LIGHTS_COLORS['warning']} bold",
    'error': f"{CITY_LIGHTS_COLORS['error']} bold",
    'primary': f"{CITY_LIGHTS_COLORS['primary']} bold",
    'accent': f"{CITY_LIGHTS_COLORS['accent']}",
    'todo': f"{CITY_LIGHTS_COLORS['primary']}",
    'task': f"{CITY_LIGHTS_COLORS['success']}",
    'event': f"{CITY_LIGHTS_COLORS['warning']}",
    'overdue': f"{CITY_LIGHTS_COLORS['critical']}",
    'weekday': f"{CITY_LIGHTS_COLORS['secondary']}",
    'header': f"{CITY_LIGHTS_COLORS['text_bright']} bold",
    'subheader': f"{CITY_LIGHTS_COLORS['accent']} bold",
    'border': f"{CITY_LIGHTS_COLORS['surface_light']}",
})

KIND_STYLES: Dict[ItemKind, str] = {
    ItemKind.TODO: 'todo',
    ItemKind.TASK: 'task',
    ItemKind.EVENT: 'event',
}


def get_themed_console(no_color: bool = False) -> Console:
    """Get a console instance with the mtc theme applied."""
    return Console(theme=MTC_THEME, no_color=no_color, highlight=False)


def get_error_console(no_color: bool = False) -> Console:
    """Themed console writing to stderr."""
    return Console(theme=MTC_THEME, no_color=no_color, highlight=False, stderr=True)


def kind_style(kind: ItemKind) -> str:
    return KIND_STYLES.get(kind, 'default')

"""Research link suggestions: search URLs and well-known tool homepages.

Search links are generated locally (no search API is queried). Tool links
come from a fixed table keyed by lowercase tool name.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import quote, quote_plus

from smart_extract.models import ResearchLink

if TYPE_CHECKING:
    from collections.abc import Iterable

MAX_TOOL_LINKS = 8
MAX_TOPIC_LINKS = 5

_STACK_OVERFLOW_RE = re.compile(
    r"code|programming|javascript|python|java|css|html|api|function|error", re.IGNORECASE
)
_WEB_DOCS_RE = re.compile(r"react|vue|angular|node|npm", re.IGNORECASE)

_NEOVIM = ("https://neovim.io/", "Neovim - Hyperextensible Vim-based text editor")
_RIPGREP = ("https://github.com/BurntSushi/ripgrep", "ripgrep - Fast text search tool")
_KUBERNETES = ("https://kubernetes.io/", "Kubernetes - Container orchestration")
_VSCODE = ("https://code.visualstudio.com/", "Visual Studio Code - Code editor")
_BREW = ("https://brew.sh/", "Homebrew - macOS package manager")
_NODE = ("https://nodejs.org/", "Node.js - JavaScript runtime")
_GO = ("https://go.dev/", "Go - Programming language by Google")
_POSTGRES = ("https://www.postgresql.org/", "PostgreSQL - Advanced open source database")
_OH_MY_ZSH = ("https://ohmyz.sh/", "Oh My Zsh - Framework for managing zsh configuration")
_P10K = ("https://github.com/romkatv/powerlevel10k", "Powerlevel10k - Zsh theme")
_NERD_FONTS = ("https://www.nerdfonts.com/", "Nerd Fonts - Developer targeted fonts with icons")
_FIRA_CODE = ("https://github.com/tonsky/FiraCode", "Fira Code - Font with programming ligatures")
_JETBRAINS_MONO = ("https://www.jetbrains.com/lp/mono/", "JetBrains Mono - Developer font")

TOOL_LINKS: dict[str, tuple[str, str]] = {
    # Terminal and CLI tools
    "fzf": ("https://github.com/junegunn/fzf", "fzf - Command-line fuzzy finder"),
    "bat": ("https://github.com/sharkdp/bat", "bat - A cat clone with syntax highlighting"),
    "ripgrep": _RIPGREP,
    "rg": _RIPGREP,
    "exa": ("https://github.com/ogham/exa", "exa - Modern replacement for ls"),
    "fd": ("https://github.com/sharkdp/fd", "fd - Simple, fast find alternative"),
    "zoxide": ("https://github.com/ajeetdsouza/zoxide", "zoxide - Smarter cd command"),
    "starship": ("https://starship.rs/", "Starship - Cross-shell prompt"),
    "tmux": ("https://github.com/tmux/tmux/wiki", "tmux - Terminal multiplexer"),
    "htop": ("https://htop.dev/", "htop - Interactive process viewer"),
    "jq": ("https://jqlang.github.io/jq/", "jq - Command-line JSON processor"),
    "httpie": ("https://httpie.io/", "HTTPie - Human-friendly HTTP client"),
    # Shells
    "zsh": ("https://www.zsh.org/", "Zsh - Extended Bourne shell"),
    "fish": ("https://fishshell.com/", "Fish - Smart and user-friendly command line shell"),
    "oh my zsh": _OH_MY_ZSH,
    "oh-my-zsh": _OH_MY_ZSH,
    "powerlevel10k": _P10K,
    "p10k": _P10K,
    # Editors and IDEs
    "neovim": _NEOVIM,
    "nvim": _NEOVIM,
    "vim": ("https://www.vim.org/", "Vim - Text editor"),
    "emacs": ("https://www.gnu.org/software/emacs/", "Emacs - Extensible text editor"),
    "vscode": _VSCODE,
    "vs code": _VSCODE,
    "visual studio code": _VSCODE,
    "pycharm": ("https://www.jetbrains.com/pycharm/", "PyCharm - Python IDE"),
    "intellij": ("https://www.jetbrains.com/idea/", "IntelliJ IDEA - Java IDE"),
    # Version control and containers
    "git": ("https://git-scm.com/", "Git - Version control system"),
    "docker": ("https://docs.docker.com/", "Docker - Containerization platform"),
    "kubernetes": _KUBERNETES,
    "k8s": _KUBERNETES,
    "podman": ("https://podman.io/", "Podman - Daemonless container engine"),
    # Package managers
    "homebrew": _BREW,
    "brew": _BREW,
    "npm": ("https://www.npmjs.com/", "npm - Node.js package manager"),
    "yarn": ("https://yarnpkg.com/", "Yarn - JavaScript package manager"),
    "pnpm": ("https://pnpm.io/", "pnpm - Fast, disk space efficient package manager"),
    "pip": ("https://pip.pypa.io/", "pip - Python package installer"),
    "poetry": ("https://python-poetry.org/", "Poetry - Python dependency management"),
    "cargo": ("https://doc.rust-lang.org/cargo/", "Cargo - Rust package manager"),
    # Languages and frameworks
    "python": ("https://www.python.org/", "Python - Programming language"),
    "rust": ("https://www.rust-lang.org/", "Rust - Systems programming language"),
    "golang": _GO,
    "typescript": ("https://www.typescriptlang.org/", "TypeScript - Typed JavaScript"),
    "node": _NODE,
    "nodejs": _NODE,
    "react": ("https://react.dev/", "React - JavaScript library for building UIs"),
    "vue": ("https://vuejs.org/", "Vue.js - Progressive JavaScript framework"),
    "angular": ("https://angular.dev/", "Angular - Platform for building apps"),
    "django": ("https://www.djangoproject.com/", "Django - Python web framework"),
    "flask": ("https://flask.palletsprojects.com/", "Flask - Python web framework"),
    "fastapi": ("https://fastapi.tiangolo.com/", "FastAPI - Modern Python web framework"),
    # Databases
    "postgresql": _POSTGRES,
    "postgres": _POSTGRES,
    "mysql": ("https://www.mysql.com/", "MySQL - Open source database"),
    "sqlite": ("https://www.sqlite.org/", "SQLite - Embedded database"),
    "mongodb": ("https://www.mongodb.com/", "MongoDB - Document database"),
    "redis": ("https://redis.io/", "Redis - In-memory data store"),
    # Cloud and infrastructure
    "aws": ("https://aws.amazon.com/", "AWS - Cloud computing services"),
    "terraform": ("https://www.terraform.io/", "Terraform - Infrastructure as code"),
    "ansible": ("https://www.ansible.com/", "Ansible - Automation platform"),
    # Fonts
    "nerd fonts": _NERD_FONTS,
    "nerd font": _NERD_FONTS,
    "fira code": _FIRA_CODE,
    "jetbrains mono": _JETBRAINS_MONO,
    "iosevka": ("https://typeof.net/Iosevka/", "Iosevka - Versatile typeface for code"),
    # Operating systems
    "ubuntu": ("https://ubuntu.com/", "Ubuntu - Linux distribution"),
    "debian": ("https://www.debian.org/", "Debian - Universal operating system"),
    "arch linux": ("https://archlinux.org/", "Arch Linux - Lightweight distribution"),
}

# Longest names first so "oh my zsh" is tried before "zsh"
_TOOL_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (name, re.compile(rf"(?<![\w-]){re.escape(name)}(?![\w-])"))
    for name in sorted(TOOL_LINKS, key=len, reverse=True)
]


def dedupe_links(links: Iterable[ResearchLink], limit: int | None = None) -> list[ResearchLink]:
    """Drop links whose URL was already seen, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[ResearchLink] = []
    for link in links:
        if link.url in seen:
            continue
        seen.add(link.url)
        unique.append(link)
    return unique if limit is None else unique[:limit]


def search_links(query: str, limit: int = 5) -> list[ResearchLink]:
    """Build search URLs for ``query``.

    A Google search is always first. Wikipedia is added for how/what
    queries, Stack Overflow for programming terms and an MDN site search
    for JavaScript frameworks.

    Args:
        query: Free-text search query.
        limit: Maximum number of links.

    Returns:
        Up to ``limit`` search links.
    """
    encoded = quote(query, safe="")
    links = [
        ResearchLink(
            url=f"https://www.google.com/search?q={encoded}",
            title=f"Google Search: {query}",
            kind="search",
        )
    ]
    lowered = query.lower()
    if "how" in lowered or "what" in lowered:
        links.append(
            ResearchLink(
                url=f"https://en.wikipedia.org/wiki/Special:Search?search={encoded}",
                title=f"Wikipedia: {query}",
                kind="search",
            )
        )
    if _STACK_OVERFLOW_RE.search(query):
        links.append(
            ResearchLink(
                url=f"https://stackoverflow.com/search?q={encoded}",
                title=f"Stack Overflow: {query}",
                kind="search",
            )
        )
    if _WEB_DOCS_RE.search(query):
        links.append(
            ResearchLink(
                url=f"https://www.google.com/search?q=site:developer.mozilla.org+{quote_plus(query)}",
                title=f"MDN Docs: {query}",
                kind="search",
            )
        )
    return links[:limit]


def tool_links_for(names: Iterable[str], limit: int = MAX_TOOL_LINKS) -> list[ResearchLink]:
    """Look up homepages for tool names reported by the model."""
    links = []
    for name in names:
        entry = TOOL_LINKS.get(name.lower().strip())
        if entry:
            url, title = entry
            links.append(ResearchLink(url=url, title=title, kind="tool"))
    return dedupe_links(links, limit)


def detect_tools(text: str) -> list[str]:
    """Return table tool names mentioned in ``text`` as whole words."""
    lowered = text.lower()
    found: list[str] = []
    for name, pattern in _TOOL_PATTERNS:
        if pattern.search(lowered):
            found.append(name)
    return found


def detect_tool_links(text: str, limit: int = MAX_TOOL_LINKS) -> list[ResearchLink]:
    if not text:
        return []
    return tool_links_for(detect_tools(text), limit)


def topic_links(
    specific_tools: Iterable[str],
    key_takeaways: Iterable[str],
    limit: int = MAX_TOPIC_LINKS,
) -> list[ResearchLink]:
    """Links for tools a video analysis named or mentioned in its takeaways."""
    names = [*specific_tools, *detect_tools(" ".join(key_takeaways))]
    return tool_links_for(names, limit)

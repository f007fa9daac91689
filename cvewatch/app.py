import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from cvewatch.__version__ import __version__
from cvewatch.core.correlator import CorrelatedDependency, attach, iter_dependencies, tree_cve_count
from cvewatch.core.errors import CveWatchError
from cvewatch.core.model import DEV, FolderNode, Product, ScanResult, VulnerabilityRecord
from cvewatch.core.nvd import RESULTS_PER_PRODUCT, VulnerabilityClient
from cvewatch.core.projects import ProjectsService
from cvewatch.core.watch import CveWatcher

# Products derived from the scanned tree when none are given
MAX_DERIVED_PRODUCTS = 25

SEVERITY_RANK = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "NONE")

SEVERITY_COLORS = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "green",
}


def _severity_rank(severity: str) -> int:
    return SEVERITY_RANK.index(severity) if severity in SEVERITY_RANK else len(SEVERITY_RANK)


def group_by_product(cves: Sequence[VulnerabilityRecord]) -> List[Tuple[str, List[VulnerabilityRecord]]]:
    """Products with the most CVEs first; within a product, worst severity first."""
    groups: Dict[str, List[VulnerabilityRecord]] = {}
    for cve in cves:
        groups.setdefault(cve.matched_product or "Unknown", []).append(cve)

    ordered = sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)
    return [(name, sorted(items, key=lambda c: _severity_rank(c.severity))) for name, items in ordered]


def severity_stats(cves: Sequence[VulnerabilityRecord]) -> Dict[str, int]:
    stats = {severity: 0 for severity in SEVERITY_RANK}
    for cve in cves:
        stats[cve.severity if cve.severity in stats else "NONE"] += 1
    return stats


def product_report(cves: Sequence[VulnerabilityRecord]) -> str:
    md_output = []

    for product, items in group_by_product(cves):
        plural = "" if len(items) == 1 else "s"
        md_output.append(f"# {product} ({len(items)} CVE{plural})\n")

        summary = " · ".join(
            f"{count} {severity.title()}"
            for severity, count in severity_stats(items).items()
            if count and severity != "NONE"
        )
        if summary:
            md_output.append(f"_{summary}_\n")

        for cve in items:
            score = f"{cve.score}" if cve.score is not None else "n/a"
            md_output.append(f"- **{cve.severity}** [{cve.id}]({cve.url}) · score {score} · published {cve.published[:10]}")

        md_output.append("\n---\n")

    if not md_output:
        return "No CVEs fetched yet."

    return "\n".join(md_output)


def products_from_tree(tree: Optional[FolderNode], limit: int = MAX_DERIVED_PRODUCTS) -> List[Product]:
    products = []
    seen = set()
    if tree is None:
        return products

    for dep in iter_dependencies(tree):
        key = dep.name.lower()
        if key in seen:
            continue
        seen.add(key)
        products.append(Product(id=key, name=dep.name))
        if len(products) >= limit:
            break
    return products


class VulnerabilityScreen(ModalScreen):
    """Modal to display vulnerability details in a clean view."""

    DEFAULT_CSS = """
    VulnerabilityScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
        scrollbar-gutter: stable;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, package_name: str, version: str, cves: Sequence[VulnerabilityRecord]) -> None:
        super().__init__()
        self.pkg_name = package_name
        self.pkg_ver = version
        self.cves = cves

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(self.pkg_name)} {escape(self.pkg_ver)}", id="title"),
            VerticalScroll(
                Markdown(self._build_full_report()),
                id="content-scroll"
            ),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def _build_full_report(self) -> str:
        md_output = []

        for cve in self.cves:
            score = f"{cve.score}" if cve.score is not None else "n/a"
            cvss = f" (CVSS {cve.cvss_version})" if cve.cvss_version else ""

            md_output.append(f"# (X) {cve.id}\n")
            md_output.append(f"**{cve.severity}** · score {score}{cvss} · published {cve.published[:10]}\n")
            md_output.append(f"{cve.description}\n")

            if cve.matched_product:
                md_output.append(f"_Matched product: {cve.matched_product}_\n")

            md_output.append("### Links\n")
            md_output.append(f"- **NVD**: [{cve.url}]({cve.url})")
            for url in cve.references:
                md_output.append(f"- **Reference**: [{url}]({url})")

            md_output.append("\n---\n")

        if not md_output:
            return "No vulnerability data found."

        return "\n".join(md_output)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


class CveListScreen(VulnerabilityScreen):
    """Every fetched CVE, grouped by the product it was found for."""

    def __init__(self, cves: Sequence[VulnerabilityRecord]) -> None:
        super().__init__("CVEs by product", f"({len(cves)})", cves)

    def _build_full_report(self) -> str:
        return product_report(self.cves)


class CveWatchApp(App):
    TITLE = "CVE Watch"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        border: none;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("enter", "show_details", "Details"),
        Binding("v", "toggle_filter", "Vuln Only"),
        Binding("c", "show_cve_list", "CVE List"),
        Binding("r", "refresh", "Refresh CVEs"),
        Binding("s", "rescan", "Rescan"),
    ]

    show_only_vulnerable: bool = False

    def __init__(
        self,
        directory: str,
        products: Sequence[Product] = (),
        results_per_product: int = RESULTS_PER_PRODUCT,
        poll_interval: int = 30,
        notifications: bool = True,
        api_key: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.directory = directory
        self.products = list(products)
        self.poll_interval = poll_interval
        self.notifications = notifications

        self.projects = ProjectsService()
        self.client = VulnerabilityClient(api_key=api_key)
        self.watcher = CveWatcher(self.client, results_per_product=results_per_product)

        self.scan_result: Optional[ScanResult] = None
        self.cves: List[VulnerabilityRecord] = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label("[b]Folder:[/b] [cyan]...[/]", id="lbl-folder", classes="info-label")
            yield Label("[b]Projects:[/b] [blue]0[/]", id="lbl-projects", classes="info-label")
            yield Label("[b]Packages:[/b] [blue]0[/]", id="lbl-packages", classes="info-label")
            yield Label("[b]CVEs:[/b] [red]0[/]", id="lbl-cves", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Initializing CVE Watch...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.scan_project()
        self.set_interval(self.poll_interval * 60, self.poll_cves)

    async def on_unmount(self) -> None:
        self.watcher.cancel()
        await self.client.aclose()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def action_show_details(self) -> None:
        node = self.query_one("#dep-tree").cursor_node
        if node:
            self._show_package(node.data)

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        self._show_package(event.node.data)

    def _show_package(self, data: Any) -> None:
        if not isinstance(data, CorrelatedDependency):
            return
        if data.vulnerable:
            self.push_screen(VulnerabilityScreen(data.name, data.version, data.cves))
        else:
            self.notify("No known CVEs for this package.", severity="information")

    def action_toggle_filter(self) -> None:
        self.show_only_vulnerable = not self.show_only_vulnerable

        status = "enabled" if self.show_only_vulnerable else "disabled"
        severity = "warning" if self.show_only_vulnerable else "information"
        msg = "Showing vulnerable packages only." if self.show_only_vulnerable else "Showing all packages."

        self.notify(f"Filter {status}: {msg}", severity=severity)
        self.render_tree()

    def action_show_cve_list(self) -> None:
        self.push_screen(CveListScreen(self.cves))

    def action_refresh(self) -> None:
        self.fetch_cves(bypass_rate_limit=False)

    def action_rescan(self) -> None:
        self.rescan_project()

    def poll_cves(self) -> None:
        self.fetch_cves(bypass_rate_limit=True)

    # --- LOGIC ---

    def update_progress(self, current: int, total: int) -> None:
        self.update_status(f"Fetching CVEs... (Batch {current} of {total})")

    def update_status(self, msg: str) -> None:
        self.query_one("#status-label", Label).update(msg)

    def update_dashboard_ui(self) -> None:
        result = self.scan_result
        folder = escape(result.root_name) if result else "..."
        projects = result.total_projects if result else 0
        packages = result.total_packages if result else 0
        limited = " [yellow](limited)[/]" if result and result.limit_reached else ""

        self.query_one("#lbl-folder", Label).update(f"[b]Folder:[/b] [cyan]{folder}[/]{limited}")
        self.query_one("#lbl-projects", Label).update(f"[b]Projects:[/b] [blue]{projects}[/]")
        self.query_one("#lbl-packages", Label).update(f"[b]Packages:[/b] [blue]{packages}[/]")
        self.query_one("#lbl-cves", Label).update(f"[b]CVEs:[/b] [red]{len(self.cves)}[/]")

    def show_error(self, message: str) -> None:
        self.query_one("#status-label", Label).update(f"[bold red]Fatal Error:[/]\n{escape(message)}")
        self.query_one("LoadingIndicator").display = False

    def watched_products(self) -> List[Product]:
        if self.products:
            return self.products
        return products_from_tree(self.scan_result.tree if self.scan_result else None)

    @work(thread=False, exclusive=True, group="scan")
    async def scan_project(self) -> None:
        try:
            logging.info("Worker started.")
            self.update_status(f"Scanning {escape(self.directory)}...")

            self.scan_result, _ = await self.projects.select_folder(self.directory)
            if self.scan_result.error:
                raise CveWatchError(self.scan_result.error)

            self.update_dashboard_ui()
            await self._fetch(bypass_rate_limit=True)
            self.render_tree()

        except Exception as e:
            logging.exception("Fatal error in worker:")
            self.show_error(str(e))

    @work(thread=False, exclusive=True, group="scan")
    async def rescan_project(self) -> None:
        try:
            scanned = await self.projects.rescan()
        except CveWatchError as e:
            self.notify(str(e), severity="warning")
            return

        if scanned is None:
            self.notify("Rescan failed.", severity="error")
            return

        self.scan_result, _ = scanned
        self.update_dashboard_ui()
        self.render_tree()
        self.notify("Folder rescanned.", severity="information")

    @work(thread=False, exclusive=True, group="fetch")
    async def fetch_cves(self, bypass_rate_limit: bool = False) -> None:
        await self._fetch(bypass_rate_limit)
        self.render_tree()

    async def _fetch(self, bypass_rate_limit: bool) -> None:
        products = self.watched_products()
        self.update_status(f"Fetching CVEs for {len(products)} products...")

        result = await self.watcher.refresh(
            products,
            notifications=self.notifications,
            bypass_rate_limit=bypass_rate_limit,
            on_progress=self.update_progress,
        )
        if result is None:
            return

        if result.error:
            self.notify(result.error, severity="warning")

        self.cves = result.cves
        self.update_dashboard_ui()

        if self.notifications:
            for alert in result.alerts:
                link = f"\n{alert.url}" if alert.url else ""
                self.notify(escape(alert.body) + link, title=alert.title, severity="error", timeout=10)

    def render_tree(self) -> None:
        result = self.scan_result
        if result is None:
            return

        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = result
        tree.root.label = f"📂 {escape(result.root_name)}"
        tree.root.expand()

        if result.tree is not None:
            self._add_folder(tree.root, result.tree)

        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()

    def _add_folder(self, tree_node, folder: FolderNode) -> None:
        for manifest in folder.dependency_files:
            packages = attach(manifest.packages, self.cves)
            if self.show_only_vulnerable:
                packages = [p for p in packages if p.vulnerable]
                if not packages:
                    continue

            file_node = tree_node.add(
                f"[b]{escape(manifest.file_name)}[/] [dim]{manifest.ecosystem} · {len(manifest.packages)}[/]",
                expand=self.show_only_vulnerable,
                data=manifest,
            )
            for pkg in packages:
                file_node.add_leaf(self._package_label(pkg), data=pkg)

        for child in folder.children:
            cve_count = tree_cve_count(child, self.cves)
            if self.show_only_vulnerable and cve_count == 0:
                continue

            cve_suffix = f" [red]({cve_count} CVEs)[/]" if cve_count else ""
            child_node = tree_node.add(
                f"📁 {escape(child.name)} [dim]↳[/] {child.total_packages}{cve_suffix}",
                expand=self.show_only_vulnerable,
                data=child,
            )
            self._add_folder(child_node, child)

    @staticmethod
    def _package_label(pkg: CorrelatedDependency) -> str:
        safe_name = escape(pkg.name)
        safe_ver = escape(pkg.version)
        dev = " [dim](dev)[/]" if pkg.dependency.kind == DEV else ""

        if pkg.vulnerable:
            worst = min((c.severity for c in pkg.cves), key=_severity_rank)
            color = SEVERITY_COLORS.get(worst, "red")
            return f"[bold red](!) {safe_name}[/] [dim]{safe_ver}[/]{dev} [{color}]({len(pkg.cves)} CVEs)[/]"
        return f"[green](•) {safe_name} [dim]{safe_ver}[/]{dev}"

import asyncio
import inspect
import typer
import logging
from typing import Optional
from dotenv import load_dotenv
from InquirerPy import inquirer


load_dotenv()

from zap_indexer.app.domain.errors import ZapIndexerError  # noqa: E402
from zap_indexer.app.interface.tasks import TASKS  # noqa: E402
from zap_indexer.app.interface.tasks.ingestion.sync_task import sync_task  # noqa: E402
from zap_indexer.app.interface.tasks.ledger.reserves_task import reserves_task  # noqa: E402
from zap_indexer.app.interface.tasks.rewards.distribute_task import distribute_task  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing zilswap on chain data.")
app.add_typer(indexer_app, name="indexer")


def _print_result(result: object) -> None:
    if result is None:
        return
    if isinstance(result, dict):
        for key, value in result.items():
            typer.echo(f"{key}: {getattr(value, 'value', value)}")
    elif isinstance(result, list):
        for item in result:
            typer.echo(item)
    else:
        typer.echo(result)


def _run(coro) -> object:
    try:
        return asyncio.run(coro)
    except ZapIndexerError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1)


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]

    kwargs: dict[str, object] = {}

    sig = inspect.signature(task)
    params = sig.parameters

    if "distributor" in params:
        kwargs["distributor"] = inquirer.text(
            message="Distributor (name or contract address):",
        ).execute()
    if "epoch_number" in params:
        epoch_str = inquirer.text(
            message="Epoch number (optional, empty = last finished epoch):",
            default="",
        ).execute()
        kwargs["epoch_number"] = int(epoch_str) if epoch_str.strip() else None
    if "from_block" in params:
        kwargs["from_block"] = inquirer.text(
            message="From block (inclusive):",
            default="earliest",
        ).execute()
    if "to_block" in params:
        kwargs["to_block"] = inquirer.text(
            message="To block (inclusive):",
            default="latest",
        ).execute()
    if "pool_address" in params:
        pool_str = inquirer.text(
            message="Pool address (optional, empty = all pools):",
            default="",
        ).execute()
        kwargs["pool_address"] = pool_str.strip() or None
    if "limit" in params:
        limit_str = inquirer.text(
            message="Limit (optional, empty = no limit):",
            default="",
        ).execute()
        kwargs["limit"] = int(limit_str) if limit_str.strip() else None

    _print_result(_run(task(**kwargs)))  # type: ignore


@indexer_app.command("sync")
def sync() -> None:
    """Backfill and poll every configured contract until interrupted."""
    _print_result(_run(sync_task()))


@indexer_app.command("distribute")
def distribute(
    distributor: str = typer.Argument(..., help="Distributor name or contract address."),
    epoch: Optional[int] = typer.Option(None, "--epoch", help="Epoch number (default: last finished)."),
) -> None:
    """Generate the reward distribution of one epoch."""
    result = _run(distribute_task(distributor=distributor, epoch_number=epoch))
    typer.echo(
        f"epoch={result.epoch_number} root={result.root.hex()} "
        f"leaves={result.leaves} total={result.total_amount} created={result.created}"
    )


@indexer_app.command("reserves")
def reserves(
    pool: Optional[str] = typer.Option(None, "--pool", help="Only this pool."),
) -> None:
    """Print pool reserves computed from the ledger."""
    for r in _run(reserves_task(pool_address=pool)):
        typer.echo(f"{r.pool_address} reserve_0={r.reserve_0} reserve_1={r.reserve_1}")


if __name__ == "__main__":
    LOGO = r"""

     _____                 ___           _
    |__  /__ _ _ __       |_ _|_ __   __| | _____  _____ _ __
      / // _` | '_ \ _____ | || '_ \ / _` |/ _ \ \/ / _ \ '__|
     / /| (_| | |_) |_____|| || | | | (_| |  __/>  <  __/ |
    /____\__,_| .__/      |___|_| |_|\__,_|\___/_/\_\___|_|
              |_|

      --- Zilswap Indexer CLI ---
    """
    typer.echo(LOGO)
    app()

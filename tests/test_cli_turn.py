import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from rich.console import Console

from chatai.agent.client import ChatApiError
from chatai.cli.app import ChataiCLI
from chatai.config import ChataiSettings
from chatai.core.confirmation import ConfirmationState
from chatai.core.executor import ExecutionResult


class FakeExecutor:
    def __init__(self) -> None:
        self.commands: list[str] = []

    async def run(self, command: str) -> ExecutionResult:
        self.commands.append(command)
        return ExecutionResult(command=command, stdout=f"out:{command}\n", returncode=0)


class FakeClient:
    def __init__(self, replies: list[str] | None = None, models: list[str] | None = None) -> None:
        self.api_key: str | None = None
        self.base_url = "https://api.example.test/openai/v1"
        self.replies = list(replies or [])
        self.models = models if models is not None else ["llama-3.1-8b-instant"]
        self.sent: list[tuple[str, str]] = []
        self.valid_keys = {"gsk_valid"}
        self.validated: list[str] = []

    async def validate_key(self, api_key: str) -> bool:
        self.validated.append(api_key)
        return api_key in self.valid_keys

    async def list_models(self) -> list[str]:
        return self.models

    async def complete(self, model: str, content: str) -> str:
        self.sent.append((model, content))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class CLITestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp_home = tempfile.TemporaryDirectory()
        self._tmp_root = tempfile.TemporaryDirectory()
        home = Path(self._tmp_home.name)
        for patcher in (
            mock.patch.dict(os.environ, {"HOME": str(home)}, clear=False),
            mock.patch("pathlib.Path.home", return_value=home),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)
        os.environ.pop("GROQ_API_KEY", None)
        self.root = Path(self._tmp_root.name)
        self.console = Console(record=True, force_terminal=False, color_system=None, width=200)
        self.executor = FakeExecutor()

    async def asyncTearDown(self) -> None:
        self._tmp_home.cleanup()
        self._tmp_root.cleanup()

    def _cli(self, client: FakeClient, answers: list[str], **kwargs) -> ChataiCLI:
        kwargs.setdefault("platform", "linux")
        cli = ChataiCLI(
            root=self.root,
            console=self.console,
            client=client,  # type: ignore[arg-type]
            executor=self.executor,
            interactive_prompts=False,
            **kwargs,
        )
        self.prompts: list[str] = []
        remaining = list(answers)

        async def fake_read_input(prompt: str = "You: ") -> str:
            self.prompts.append(prompt)
            if not remaining:
                raise EOFError
            return remaining.pop(0)

        cli._read_input = fake_read_input  # type: ignore[assignment]
        return cli


class HandleTurnTests(CLITestCase):
    async def test_turn_sends_augmented_input_and_runs_confirmed_block(self) -> None:
        client = FakeClient(replies=["Try this:\n```bash\nls -la\n```\n```powershell\ndir\n```"])
        cli = self._cli(client, ["y"], settings=ChataiSettings(api_key="gsk_valid"))
        cli.model = "llama-3.1-8b-instant"
        outcome = await cli.handle_turn('>"echo A" what happened?')

        model, content = client.sent[0]
        self.assertEqual(model, "llama-3.1-8b-instant")
        self.assertTrue(content.startswith(cli.system_prompt))
        self.assertIn("```bash ```", cli.system_prompt)
        self.assertIn("what happened?\n\nCommand: echo A\n```\nout:echo A\n```\n", content)
        self.assertEqual(self.executor.commands, ["echo A", "ls -la"])
        self.assertIsNotNone(outcome)
        self.assertIs(outcome.state, ConfirmationState.ASK_EACH)
        self.assertEqual(len(self.prompts), 1)
        self.assertIn("AI: Try this:", self.console.export_text())

    async def test_plain_turn_is_sent_unchanged(self) -> None:
        client = FakeClient(replies=["Just text."])
        cli = self._cli(client, [], settings=ChataiSettings(api_key="gsk_valid"))
        cli.model = "m"
        outcome = await cli.handle_turn("how are you?")
        self.assertEqual(client.sent[0][1], cli.system_prompt + "how are you?")
        self.assertEqual(outcome.results, [])
        self.assertEqual(self.prompts, [])

    async def test_windows_session_uses_powershell_blocks(self) -> None:
        client = FakeClient(replies=["```bash\nls\n```\n```powershell\nGet-ChildItem\n```"])
        cli = self._cli(client, ["y"], settings=ChataiSettings(api_key="k"), platform="win32")
        self.assertEqual(cli.shell_tag, "powershell")
        cli.model = "m"
        await cli.handle_turn("list files")
        self.assertEqual(self.executor.commands, ["Get-ChildItem"])

    async def test_api_error_is_reported_and_turn_ends(self) -> None:
        client = FakeClient(replies=[ChatApiError(500, "upstream exploded")])
        cli = self._cli(client, [], settings=ChataiSettings(api_key="k"))
        cli.model = "m"
        outcome = await cli.handle_turn("hello")
        self.assertIsNone(outcome)
        output = self.console.export_text()
        self.assertIn("API error", output)
        self.assertIn("Status: 500", output)
        self.assertIn("upstream exploded", output)


class RunLoopTests(CLITestCase):
    async def test_empty_line_ends_session(self) -> None:
        client = FakeClient(
            replies=["No commands needed."],
            models=["whisper-large-v3", "llama-3.1-8b-instant"],
        )
        cli = self._cli(client, ["hi", "   "], settings=ChataiSettings(api_key="gsk_valid"))
        await cli.run()
        self.assertEqual(client.validated, ["gsk_valid"])
        self.assertEqual(len(client.sent), 1)
        self.assertEqual(client.sent[0][0], "llama-3.1-8b-instant")
        output = self.console.export_text()
        self.assertIn("Model: llama-3.1-8b-instant", output)
        self.assertIn("Bye", output)

    async def test_invalid_saved_key_prompts_and_persists_new_key(self) -> None:
        client = FakeClient(replies=[])
        cli = self._cli(
            client,
            ["gsk_wrong", "gsk_valid", ""],
            settings=ChataiSettings(api_key="gsk_stale"),
        )
        with mock.patch("chatai.cli.app.webbrowser.open") as open_browser:
            await cli.run()
        open_browser.assert_called_once()
        self.assertEqual(client.validated, ["gsk_stale", "gsk_wrong", "gsk_valid"])
        self.assertEqual(client.api_key, "gsk_valid")
        self.assertEqual(cli.settings.api_key, "gsk_valid")
        data = json.loads(cli.paths.settings_file.read_text(encoding="utf-8"))
        self.assertEqual(data["apiKey"], "gsk_valid")
        self.assertIn("does not seem to be valid", self.console.export_text())

    async def test_empty_key_entry_exits(self) -> None:
        client = FakeClient()
        cli = self._cli(client, [""], settings=ChataiSettings())
        with mock.patch("chatai.cli.app.webbrowser.open"):
            await cli.run()
        self.assertEqual(client.sent, [])
        self.assertIn("No API key entered", self.console.export_text())
        self.assertFalse(cli.paths.settings_file.exists())

    async def test_no_usable_model_exits(self) -> None:
        client = FakeClient(models=[])
        cli = self._cli(client, ["hi"], settings=ChataiSettings(api_key="gsk_valid"))
        await cli.run()
        self.assertEqual(client.sent, [])
        self.assertIn("did not offer any usable model", self.console.export_text())


class ExitTests(unittest.IsolatedAsyncioTestCase):
    async def test_graceful_exit_ignores_broken_pipe(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_home, tempfile.TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"HOME": tmp_home}, clear=False), mock.patch(
                "pathlib.Path.home", return_value=Path(tmp_home)
            ):
                console = Console(file=io.StringIO(), force_terminal=True, color_system=None)
                cli = ChataiCLI(
                    root=Path(tmp),
                    console=console,
                    settings=ChataiSettings(api_key="k"),
                    interactive_prompts=False,
                )

                def raise_broken_pipe(*args, **kwargs):  # type: ignore[no-untyped-def]
                    raise BrokenPipeError()

                with mock.patch.object(cli.console, "print", new=raise_broken_pipe):
                    await cli._graceful_exit()


if __name__ == "__main__":
    unittest.main()

import unittest

from chatai.agent.models import select_model


class SelectModelTests(unittest.TestCase):
    def test_prefers_llama3_over_guard(self) -> None:
        ids = ["whisper-large-v3", "llama-guard-3-8b", "llama-3-guard", "mixtral-8x7b", "llama-3.1-8b-instant"]
        self.assertEqual(select_model(ids), "llama-3.1-8b-instant")

    def test_falls_back_to_mixtral(self) -> None:
        self.assertEqual(select_model(["gemma2-9b-it", "mixtral-8x7b-32768"]), "mixtral-8x7b-32768")

    def test_skips_speech_models(self) -> None:
        ids = ["whisper-large-v3", "playai-orpheus", "llama-guard-4", "gemma2-9b-it"]
        self.assertEqual(select_model(ids), "gemma2-9b-it")

    def test_uses_first_when_nothing_else_fits(self) -> None:
        self.assertEqual(select_model(["whisper-large-v3", "distil-whisper"]), "whisper-large-v3")

    def test_empty_list(self) -> None:
        self.assertIsNone(select_model([]))

    def test_preferred_model_when_available(self) -> None:
        ids = ["llama-3.1-8b-instant", "qwen-qwq-32b"]
        self.assertEqual(select_model(ids, preferred="qwen-qwq-32b"), "qwen-qwq-32b")
        self.assertEqual(select_model(ids, preferred="missing"), "llama-3.1-8b-instant")


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest

from keygrad.infrastructure._config import (
    ENV_BACKWARD_STRATEGY,
    ENV_TRAINING,
    BackwardStrategy,
    GraphMode,
    current_mode,
    no_grad,
    reset_mode,
    set_mode,
    use_mode,
)


class TestGraphModeFromEnv(unittest.TestCase):
    def test_defaults_when_unset(self):
        mode = GraphMode.from_env({})
        self.assertTrue(mode.training)
        self.assertIs(mode.strategy, BackwardStrategy.RECURSIVE)
        self.assertEqual(mode, GraphMode())

    def test_training_flag_parsing(self):
        for raw, expected in (
            ("0", False),
            ("false", False),
            (" FALSE ", False),
            ("", False),
            ("1", True),
            ("true", True),
            ("yes", True),
        ):
            with self.subTest(raw=raw):
                mode = GraphMode.from_env({ENV_TRAINING: raw})
                self.assertEqual(mode.training, expected)

    def test_strategy_parsing(self):
        mode = GraphMode.from_env({ENV_BACKWARD_STRATEGY: " Iterative "})
        self.assertIs(mode.strategy, BackwardStrategy.ITERATIVE)

        mode = GraphMode.from_env({ENV_BACKWARD_STRATEGY: ""})
        self.assertIs(mode.strategy, BackwardStrategy.RECURSIVE)

    def test_invalid_strategy_raises(self):
        with self.assertRaises(ValueError) as cm:
            GraphMode.from_env({ENV_BACKWARD_STRATEGY: "sideways"})
        self.assertIn(ENV_BACKWARD_STRATEGY, str(cm.exception))
        self.assertIn("recursive", str(cm.exception))

    def test_mode_is_immutable(self):
        with self.assertRaises(Exception):
            GraphMode().training = False


class TestModeContext(unittest.TestCase):
    def test_use_mode_restores_on_exit(self):
        before = current_mode()
        target = GraphMode(training=False, strategy=BackwardStrategy.ITERATIVE)
        with use_mode(target) as active:
            self.assertIs(active, target)
            self.assertIs(current_mode(), target)
        self.assertIs(current_mode(), before)

    def test_use_mode_restores_on_error(self):
        before = current_mode()
        with self.assertRaises(RuntimeError):
            with use_mode(GraphMode(training=False)):
                raise RuntimeError("boom")
        self.assertIs(current_mode(), before)

    def test_no_grad_keeps_strategy(self):
        with use_mode(GraphMode(strategy=BackwardStrategy.ITERATIVE)):
            with no_grad() as mode:
                self.assertFalse(mode.training)
                self.assertIs(mode.strategy, BackwardStrategy.ITERATIVE)
            self.assertTrue(current_mode().training)

    def test_nested_blocks(self):
        with no_grad():
            with use_mode(GraphMode(training=True)):
                self.assertTrue(current_mode().training)
            self.assertFalse(current_mode().training)

    def test_set_mode_rejects_non_modes(self):
        with self.assertRaises(TypeError):
            set_mode(False)

    def test_set_and_reset(self):
        before = current_mode()
        token = set_mode(GraphMode(training=False))
        try:
            self.assertFalse(current_mode().training)
        finally:
            reset_mode(token)
        self.assertIs(current_mode(), before)

    def test_asyncio_tasks_are_isolated(self):
        async def inference():
            with no_grad():
                await asyncio.sleep(0)
                return current_mode().training

        async def training():
            await asyncio.sleep(0)
            return current_mode().training

        async def main():
            return await asyncio.gather(inference(), training())

        inference_flag, training_flag = asyncio.run(main())
        self.assertFalse(inference_flag)
        self.assertEqual(training_flag, current_mode().training)


if __name__ == "__main__":
    unittest.main()

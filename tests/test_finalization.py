"""Tests for transcript finalization."""

import asyncio

from voice.finalization import FinalizationController, FinalizeState

GRACE = 0.12


class TestFinalizationController:
    """Test the grace-period commit policy."""

    def setup_method(self):
        """Set up test fixtures."""
        self.submitted = []

    def _controller(self, **kwargs) -> FinalizationController:
        kwargs.setdefault("grace_period", GRACE)
        return FinalizationController(self.submitted.append, **kwargs)

    def test_every_partial_restarts_the_grace_window(self):
        """Test partials at 0, 30 and 60ms submit about one grace period after the last."""
        async def scenario():
            controller = self._controller()
            loop = asyncio.get_running_loop()
            submit_times = []
            controller.on_submit = lambda text: submit_times.append((loop.time(), text))

            start = loop.time()
            controller.handle_partial("can you")
            await asyncio.sleep(0.03)
            controller.handle_partial("can you help")
            await asyncio.sleep(0.03)
            controller.handle_partial("can you help me")
            await asyncio.sleep(GRACE + 0.1)
            return start, submit_times, controller

        start, submit_times, controller = asyncio.run(scenario())

        assert len(submit_times) == 1
        submitted_at, text = submit_times[0]
        assert text == "can you help me"
        assert submitted_at - start >= 0.06 + GRACE - 0.01
        assert controller.state == FinalizeState.SUBMITTED

    def test_premature_final_does_not_submit_immediately(self):
        """Test a final followed by more speech is not committed early."""
        async def scenario():
            controller = self._controller()
            controller.handle_final("I need")
            await asyncio.sleep(GRACE / 3)
            early = list(self.submitted)
            controller.handle_partial("I need a lesson plan")
            await asyncio.sleep(GRACE + 0.1)
            return early

        early = asyncio.run(scenario())
        assert early == []
        assert self.submitted == ["I need a lesson plan"]

    def test_manual_submit_before_timer_submits_once(self):
        async def scenario():
            controller = self._controller()
            controller.handle_final("hello dash")
            first = await controller.submit()
            await asyncio.sleep(GRACE + 0.1)
            second = await controller.submit()
            return first, second, controller

        first, second, controller = asyncio.run(scenario())

        assert (first, second) == (True, False)
        assert self.submitted == ["hello dash"]
        assert controller.timer_pending is False

    def test_edit_is_not_overwritten(self):
        """Test a manual edit survives later recognition output."""
        async def scenario():
            controller = self._controller()
            controller.handle_partial("mark the regster")
            controller.edit_transcript("mark the register")
            controller.handle_final("mark the regster")
            await asyncio.sleep(GRACE + 0.1)

        asyncio.run(scenario())
        assert self.submitted == ["mark the register"]

    def test_manual_send_only_never_auto_submits(self):
        async def scenario():
            controller = self._controller(manual_send_only=True)
            controller.handle_final("only when I say so")
            await asyncio.sleep(GRACE + 0.1)
            held = list(self.submitted)
            await controller.submit()
            return held, controller

        held, controller = asyncio.run(scenario())
        assert held == []
        assert self.submitted == ["only when I say so"]
        assert controller.state == FinalizeState.SUBMITTED

    def test_cancel_discards_transcript(self):
        async def scenario():
            controller = self._controller()
            controller.handle_partial("never mind")
            controller.cancel()
            await asyncio.sleep(GRACE + 0.1)
            controller.handle_final("ignored")
            submitted = await controller.submit()
            return submitted, controller

        submitted, controller = asyncio.run(scenario())
        assert submitted is False
        assert self.submitted == []
        assert controller.state == FinalizeState.CANCELLED

    def test_reset_allows_next_utterance(self):
        async def scenario():
            controller = self._controller()
            controller.handle_final("first")
            await controller.submit()
            controller.reset()
            controller.handle_final("second")
            await asyncio.sleep(GRACE + 0.1)

        asyncio.run(scenario())
        assert self.submitted == ["first", "second"]

    def test_empty_transcript_is_not_submitted(self):
        async def scenario():
            controller = self._controller()
            controller.handle_final("   ")
            await asyncio.sleep(GRACE + 0.1)
            return controller

        controller = asyncio.run(scenario())
        assert self.submitted == []
        assert controller.state == FinalizeState.AWAITING_SPEECH

    def test_async_submit_callback_is_awaited(self):
        received = []

        async def on_submit(text):
            await asyncio.sleep(0)
            received.append(text)

        async def scenario():
            controller = FinalizationController(on_submit, grace_period=GRACE)
            controller.handle_final("async path")
            await controller.submit()

        asyncio.run(scenario())
        assert received == ["async path"]

    def test_failing_submit_callback_still_closes(self):
        def on_submit(text):
            raise RuntimeError("send failed")

        async def scenario():
            controller = FinalizationController(on_submit, grace_period=GRACE)
            controller.handle_final("boom")
            result = await controller.submit()
            return result, controller

        result, controller = asyncio.run(scenario())
        assert result is True
        assert controller.is_closed

    def test_start_options_wire_callbacks(self):
        controller = self._controller(manual_send_only=True)
        options = controller.start_options("zu-ZA")

        assert options.language == "zu-ZA"
        options.on_partial("sawubona")
        assert controller.transcript == "sawubona"

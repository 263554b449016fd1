"""
Tests for the budget policy.
"""

from autocontext.compaction.policy import BudgetPolicy, estimate_size, pairing_safe_end
from autocontext.config import BudgetConfig
from autocontext.models import Message, ToolUseBlock


def _call(call_id: str, name: str = "search") -> Message:
    return Message.assistant(tool_calls=[ToolUseBlock(id=call_id, name=name, input={})])


def _result(call_id: str, text: str = "ok", name: str = "search") -> Message:
    return Message.tool_result(call_id, text, tool_name=name)


def test_estimate_size_empty():
    """Test that an empty list has zero size."""
    assert estimate_size([]) == 0


def test_estimate_size_is_additive():
    """Test that the size of a list is the sum of its parts."""
    messages = [Message.user("hello"), _call("c1"), _result("c1", "x" * 50)]

    assert estimate_size(messages) == sum(estimate_size([m]) for m in messages)
    assert estimate_size([Message.user("hello")]) == 5


def test_must_compress_on_count():
    """Test the message count trigger."""
    policy = BudgetPolicy(BudgetConfig(message_count_threshold=3, protected_tail_size=1))

    assert policy.must_compress([Message.user("a")] * 3) is False
    assert policy.must_compress([Message.user("a")] * 4) is True


def test_must_compress_on_size():
    """Test the size trigger uses ratio times budget."""
    policy = BudgetPolicy(BudgetConfig(max_token_budget=100, trigger_token_ratio=0.5))

    assert policy.must_compress([Message.user("x" * 50)]) is False
    assert policy.must_compress([Message.user("x" * 51)]) is True


def test_is_large_payload():
    """Test the large payload threshold is exclusive."""
    policy = BudgetPolicy(BudgetConfig(large_payload_byte_threshold=10))

    assert policy.is_large_payload(Message.user("x" * 10)) is False
    assert policy.is_large_payload(Message.user("x" * 11)) is True


def test_protected_start():
    """Test the protected tail boundary."""
    policy = BudgetPolicy(BudgetConfig(protected_tail_size=3))

    assert policy.protected_start([Message.user("a")] * 10) == 7
    assert policy.protected_start([Message.user("a")] * 2) == 0


def test_pairing_safe_end_keeps_pairs():
    """Test a range never ends between a call and its result."""
    messages = [_call("c1"), _result("c1"), _call("c2"), _result("c2")]

    assert pairing_safe_end(messages, 0, 3) == 3
    assert pairing_safe_end(messages, 0, 2) == 1
    assert pairing_safe_end(messages, 0, 0) == -1


def test_pairing_safe_end_ignores_unanswered_calls():
    """Test a call with no result anywhere does not block the range."""
    messages = [_call("c1"), _result("c1"), _call("dangling")]

    assert pairing_safe_end(messages, 0, 2) == 2


def test_eligible_tool_run_found():
    """Test the oldest long-enough tool run is returned."""
    messages = [Message.user("start")]
    for i in range(4):
        messages += [_call(f"c{i}"), _result(f"c{i}")]
    messages += [Message.user(f"tail {i}") for i in range(3)]
    policy = BudgetPolicy(BudgetConfig(min_consecutive_tool_run=6, protected_tail_size=3))

    assert policy.eligible_tool_run(messages) == (1, 8)


def test_eligible_tool_run_too_short():
    """Test short runs are not eligible."""
    messages = [Message.user("start"), _call("c1"), _result("c1"), Message.user("end")]
    policy = BudgetPolicy(BudgetConfig(min_consecutive_tool_run=6, protected_tail_size=0))

    assert policy.eligible_tool_run(messages) is None


def test_eligible_tool_run_respects_protected_tail():
    """Test a run reaching into the protected tail is cut at a pair boundary."""
    messages = [Message.user("start")]
    for i in range(4):
        messages += [_call(f"c{i}"), _result(f"c{i}")]
    # Tail of 4 protects c2/c3; the run is cut to c0..c1 results
    policy = BudgetPolicy(BudgetConfig(min_consecutive_tool_run=4, protected_tail_size=4))

    assert policy.eligible_tool_run(messages) == (1, 4)


def test_eligible_tool_run_cut_mid_pair():
    """Test a tail boundary inside a pair drops the orphaned call."""
    messages = [Message.user("start")]
    for i in range(4):
        messages += [_call(f"c{i}"), _result(f"c{i}")]
    # Tail of 3 protects result c2 and pair c3; call c2 must stay with it
    policy = BudgetPolicy(BudgetConfig(min_consecutive_tool_run=4, protected_tail_size=3))

    assert policy.eligible_tool_run(messages) == (1, 4)

from xclocalizer.errors import BatchTimeoutError, ErrorCategory, TranslationProviderError
from xclocalizer.progress import ProgressAggregator
from xclocalizer.scheduler import BatchOutcome
from xclocalizer.structures import Batch, ItemStatus, TranslatableItem


def _batch(batch_id, language, *keys):
    items = tuple(TranslatableItem(key=key, source_text=key.title()) for key in keys)
    return Batch(batch_id=batch_id, target_language=language, items=items)


def test_successful_batch_records_translations_and_progress():
    events = []
    aggregator = ProgressAggregator(2, events.append)

    batch = _batch(1, "fr", "hello", "bye")
    aggregator.record_batch(BatchOutcome(batch=batch, translations=["Bonjour", "Au revoir"]))

    assert [result.value for result in aggregator.results] == ["Bonjour", "Au revoir"]
    assert all(result.status is ItemStatus.SUCCESS for result in aggregator.results)
    assert [(event.current, event.total) for event in events] == [(1, 2), (2, 2)]
    assert events[0].current_label == "fr: hello (1/2)"
    assert all(event.error is None for event in events)


def test_failed_batch_falls_back_to_source_and_flags_error():
    events = []
    aggregator = ProgressAggregator(1, events.append)

    batch = _batch(1, "de", "bye")
    aggregator.record_batch(BatchOutcome(batch=batch, error=TranslationProviderError("quota")))

    (result,) = aggregator.results
    assert result.status is ItemStatus.FAILED
    assert result.value == "Bye"
    assert result.error_message == "quota"
    assert [event.error for event in events] == [None, "quota"]
    assert [event.current for event in events] == [1, 1]
    assert aggregator.errors[0].key == "bye"
    assert aggregator.records[0].category is ErrorCategory.TRANSLATION


def test_short_translation_list_is_treated_as_batch_failure():
    aggregator = ProgressAggregator(2)

    batch = _batch(1, "fr", "hello", "bye")
    aggregator.record_batch(BatchOutcome(batch=batch, translations=["Bonjour"]))

    assert [result.status for result in aggregator.results] == [ItemStatus.FAILED] * 2
    assert [result.value for result in aggregator.results] == ["Hello", "Bye"]


def test_callback_exceptions_do_not_interrupt_aggregation():
    def broken_callback(progress):
        raise RuntimeError("UI went away")

    aggregator = ProgressAggregator(2, broken_callback)
    aggregator.record_batch(
        BatchOutcome(batch=_batch(1, "fr", "hello", "bye"), translations=["Bonjour", "Salut"])
    )

    assert aggregator.current == 2
    assert len(aggregator.results) == 2
    assert {record.category for record in aggregator.records} == {ErrorCategory.CALLBACK}


def test_summary_counts_per_language():
    aggregator = ProgressAggregator(4)
    aggregator.register_languages(["fr", "de"])
    aggregator.record_batch(
        BatchOutcome(batch=_batch(1, "fr", "a", "b"), translations=["A", "B"])
    )
    aggregator.record_batch(
        BatchOutcome(batch=_batch(2, "de", "a", "b"), error=TranslationProviderError("down"))
    )

    summary = aggregator.summary(1.5)

    assert summary.success_by_language == {"fr": 2, "de": 0}
    assert summary.failure_by_language == {"fr": 0, "de": 2}
    assert summary.is_partial_failure
    assert not summary.is_total_failure
    assert summary.completion_message() == (
        "Translation completed with 2 errors; fields kept original text."
    )


def test_summary_carries_categorised_error_records():
    aggregator = ProgressAggregator(1)
    aggregator.record_batch(
        BatchOutcome(batch=_batch(3, "ja", "hello"), error=BatchTimeoutError("too slow"))
    )

    (record,) = aggregator.summary().records
    assert record.category is ErrorCategory.TIMEOUT
    assert record.message == "Batch 3 (ja) failed: too slow"

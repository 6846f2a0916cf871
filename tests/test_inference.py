"""
Tests for the inference engine.

A FakeSession stands in for onnxruntime so no exported model is needed;
``InferenceEngine.load`` is exercised by patching ``ort.InferenceSession``.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import numpy as np
import pytest

from conftest import CLASS_NAMES, SEQ_LEN, FakeSession, logits_for
from posture_coach import inference
from posture_coach.errors import InferenceFailure, InvalidShape, ModelLoadFailure
from posture_coach.inference import InferenceEngine
from posture_coach.model_config import ModelConfig
from posture_coach.schemas import FormConfidenceStatus


def _form(value):
    return np.array([[value]], dtype=np.float32)


# ============================================================================
# Construction / metadata
# ============================================================================

class TestMetadata:

    def test_input_name_discovered_from_session(self, make_engine, make_window):
        session = FakeSession(outputs=[logits_for(0)], input_names=("pose_window", "unused"))
        engine = make_engine(session=session)
        assert engine.input_name == "pose_window"
        engine.classify(make_window())
        assert list(session.calls[0]) == ["pose_window"]

    def test_model_without_inputs_fails_to_load(self, model_config):
        session = SimpleNamespace(get_inputs=lambda: [])
        with pytest.raises(ModelLoadFailure):
            InferenceEngine(session, model_config)

    def test_unreadable_input_info_fails_to_load(self, model_config):
        def broken():
            raise RuntimeError("corrupt graph")

        with pytest.raises(ModelLoadFailure):
            InferenceEngine(SimpleNamespace(get_inputs=broken), model_config)

    def test_exposes_config(self, make_engine):
        engine = make_engine()
        assert engine.sequence_length == SEQ_LEN
        assert engine.class_names == CLASS_NAMES
        assert engine.num_classes == len(CLASS_NAMES)
        assert engine.input_shape == (1, SEQ_LEN, 132)


# ============================================================================
# classify
# ============================================================================

class TestClassify:

    def test_returns_logits_and_form_score(self, make_engine, make_window):
        logits, form = make_engine().classify(make_window())
        assert logits.shape == (len(CLASS_NAMES),)
        assert form == pytest.approx(0.8)

    def test_sends_float32_window(self, make_window):
        session = FakeSession(outputs=[logits_for(0)])
        engine = InferenceEngine(session, ModelConfig(sequence_length=SEQ_LEN))
        engine.classify(make_window().astype(np.float64))
        fed = session.calls[0]["input"]
        assert fed.dtype == np.float32
        assert fed.shape == (1, SEQ_LEN, 132)

    @pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.3, 0.0), (0.25, 0.25)])
    def test_form_score_clamped(self, make_engine, make_window, raw, expected):
        engine = make_engine(outputs=[logits_for(1), _form(raw)])
        _, form = engine.classify(make_window())
        assert form == pytest.approx(expected)

    def test_single_output_has_no_form_score(self, make_engine, make_window):
        engine = make_engine(outputs=[logits_for(1)])
        _, form = engine.classify(make_window())
        assert form is None

    def test_wrong_shape_never_reaches_session(self, make_engine, make_window):
        session = FakeSession(outputs=[logits_for(0)])
        engine = make_engine(session=session)
        with pytest.raises(InvalidShape):
            engine.classify(make_window(SEQ_LEN + 1))
        assert session.calls == []

    def test_runtime_error_becomes_inference_failure(self, make_engine, make_window):
        session = FakeSession(error=RuntimeError("ORT crashed"))
        with pytest.raises(InferenceFailure):
            make_engine(session=session).classify(make_window())

    def test_no_outputs_is_inference_failure(self, make_engine, make_window):
        with pytest.raises(InferenceFailure):
            make_engine(outputs=[]).classify(make_window())

    def test_malformed_logits_is_inference_failure(self, make_engine, make_window):
        bad = np.zeros((2, len(CLASS_NAMES)), dtype=np.float32)
        with pytest.raises(InferenceFailure):
            make_engine(outputs=[bad]).classify(make_window())

    @pytest.mark.parametrize("bad", [np.nan, np.inf])
    def test_non_finite_logits_is_inference_failure(self, make_engine, make_window, bad):
        logits = logits_for(1)
        logits[0, 3] = bad
        engine = make_engine(outputs=[logits, _form(0.5)])
        with pytest.raises(InferenceFailure, match="non-finite"):
            engine.predict(make_window())


# ============================================================================
# predict
# ============================================================================

class TestPredict:

    def test_maps_argmax_to_class_name(self, make_engine, make_window):
        result = make_engine(outputs=[logits_for(3), _form(0.6)]).predict(make_window())
        assert result.predicted_class == "sit_up"
        assert result.class_names == CLASS_NAMES
        assert sum(result.probabilities) == pytest.approx(1.0, abs=1e-4)
        assert result.score == pytest.approx(max(result.probabilities))
        assert result.form_confidence == pytest.approx(0.6)
        assert result.form_confidence_status is FormConfidenceStatus.AVAILABLE

    def test_index_outside_class_table_is_unknown(self, make_engine, make_window, caplog):
        engine = make_engine(outputs=[logits_for(6, n=7)])
        with caplog.at_level(logging.WARNING, logger="posture_coach.inference"):
            result = engine.predict(make_window())
        assert result.predicted_class == "unknown"
        assert len(result.probabilities) == 7
        assert "7 logits" in caplog.text

    def test_empty_class_table_is_unknown(self, make_window):
        engine = InferenceEngine(
            FakeSession(outputs=[logits_for(0)]), ModelConfig(sequence_length=SEQ_LEN)
        )
        assert engine.predict(make_window()).predicted_class == "unknown"

    def test_rest_has_no_form_confidence(self, make_engine, make_window):
        result = make_engine(outputs=[logits_for(4), _form(0.9)]).predict(make_window())
        assert result.predicted_class == "rest"
        assert result.form_confidence is None
        assert result.form_confidence_status is FormConfidenceStatus.NOT_APPLICABLE

    def test_rest_match_ignores_case(self, make_engine, make_window):
        config = ModelConfig(sequence_length=SEQ_LEN, class_names=("squat", "REST"))
        engine = make_engine(outputs=[logits_for(1, n=2), _form(0.9)], config=config)
        result = engine.predict(make_window())
        assert result.predicted_class == "REST"
        assert result.form_confidence is None

    def test_rest_on_single_output_model_stays_absent(self, make_engine, make_window):
        result = make_engine(outputs=[logits_for(4)]).predict(make_window())
        assert result.form_confidence_status is FormConfidenceStatus.ABSENT

    @pytest.mark.parametrize(
        "second", [np.array([], dtype=np.float32), _form(np.nan), "not a tensor"]
    )
    def test_unreadable_form_output(self, make_engine, make_window, caplog, second):
        engine = make_engine(outputs=[logits_for(1), second])
        with caplog.at_level(logging.WARNING, logger="posture_coach.inference"):
            result = engine.predict(make_window())
        assert result.predicted_class == "squat"
        assert result.form_confidence is None
        assert result.form_confidence_status is FormConfidenceStatus.UNREADABLE
        assert "form confidence" in caplog.text

    def test_repeated_calls_are_independent(self, make_engine, make_window):
        engine = make_engine()
        first = engine.predict(make_window())
        second = engine.predict(make_window())
        assert first == second


# ============================================================================
# Lifecycle and concurrency
# ============================================================================

class TestLifecycle:

    def test_closed_engine_refuses_work(self, make_engine, make_window):
        engine = make_engine()
        engine.close()
        engine.close()
        assert engine.closed
        with pytest.raises(InferenceFailure):
            engine.predict(make_window())

    def test_context_manager_closes(self, make_engine):
        with make_engine() as engine:
            assert not engine.closed
        assert engine.closed

    def test_concurrent_predictions(self, make_engine, make_window):
        engine = make_engine()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: engine.predict(make_window()), range(32)))
        assert {r.predicted_class for r in results} == {"squat"}

    def test_serialize_runs_holds_one_run_at_a_time(self, make_engine, make_window):
        session = FakeSession(outputs=[logits_for(2)], delay=0.02)
        engine = make_engine(session=session, serialize_runs=True)
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: engine.classify(make_window()), range(8)))
        assert len(session.calls) == 8
        assert session.max_active == 1


class TestLoad:

    @pytest.fixture
    def model_files(self, tmp_path):
        model_path = tmp_path / "posture_model.onnx"
        model_path.write_bytes(b"onnx-bytes")
        config_path = tmp_path / "model_config.json"
        config_path.write_text(json.dumps({
            "model": {"sequence_length": SEQ_LEN},
            "classes": {"pose_classes": CLASS_NAMES},
        }))
        return model_path, config_path

    @pytest.fixture
    def fake_ort(self, monkeypatch):
        created = []

        def factory(model_bytes, providers=None):
            session = FakeSession(outputs=[logits_for(0)])
            session.model_bytes = model_bytes
            session.providers = providers
            created.append(session)
            return session

        monkeypatch.setattr(inference.ort, "InferenceSession", factory)
        return created

    def test_load_builds_engine(self, model_files, fake_ort):
        engine = InferenceEngine.load(*model_files)
        assert engine.sequence_length == SEQ_LEN
        assert engine.class_names == CLASS_NAMES
        assert fake_ort[0].model_bytes == b"onnx-bytes"
        assert fake_ort[0].providers == ["CPUExecutionProvider"]

    def test_load_passes_providers(self, model_files, fake_ort):
        InferenceEngine.load(*model_files, providers=["CUDAExecutionProvider"])
        assert fake_ort[0].providers == ["CUDAExecutionProvider"]

    def test_missing_model_file(self, model_files, fake_ort, tmp_path):
        _, config_path = model_files
        with pytest.raises(ModelLoadFailure):
            InferenceEngine.load(tmp_path / "missing.onnx", config_path)
        assert fake_ort == []

    def test_session_creation_failure(self, model_files, monkeypatch):
        def factory(model_bytes, providers=None):
            raise RuntimeError("invalid protobuf")

        monkeypatch.setattr(inference.ort, "InferenceSession", factory)
        with pytest.raises(ModelLoadFailure, match="invalid protobuf"):
            InferenceEngine.load(*model_files)

    def test_bad_config_after_session(self, model_files, fake_ort):
        model_path, config_path = model_files
        config_path.write_text("{broken")
        with pytest.raises(ModelLoadFailure):
            InferenceEngine.load(model_path, config_path)
        assert len(fake_ort) == 1

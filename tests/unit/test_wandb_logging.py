"""Unit tests for common.train.wandb_logging helpers."""

import sys
import types

from omegaconf import OmegaConf

from classification.trainer import EpochRecord
from common.train import wandb_logging


class _FakeRun:
    def __init__(self):
        self.name = "fake-run"
        self.summary = {}


class _FakeWandb(types.ModuleType):
    def __init__(self):
        super().__init__("wandb")
        self.logged = []
        self.init_kwargs = None
        self.finished_with = None
        self.config = types.SimpleNamespace(update=lambda *a, **k: None)

    def init(self, **kwargs):
        self.init_kwargs = kwargs
        return _FakeRun()

    def define_metric(self, *args, **kwargs):
        pass

    def log(self, payload, step):
        self.logged.append((step, payload))

    def finish(self, exit_code=0):
        self.finished_with = exit_code


def test_build_epoch_payload():
    payload = wandb_logging.build_epoch_payload(epoch=3, train_loss=0.12, train_accuracy=0.9)

    assert payload == {"epoch": 3, "train/loss": 0.12, "train/accuracy": 0.9}


def test_init_returns_none_when_disabled():
    cfg = OmegaConf.create({"logging": {"logger_name": None}})

    assert wandb_logging.init_wandb_run(cfg, None, 10, 5, 2) is None


def test_init_and_epoch_logger_with_fake_module(monkeypatch):
    fake = _FakeWandb()
    monkeypatch.setitem(sys.modules, "wandb", fake)
    cfg = OmegaConf.create(
        {"logging": {"logger_name": "wandb", "project_name": "demo", "tags": ["a", 1]}}
    )

    handle = wandb_logging.init_wandb_run(cfg, "/tmp/run", 10, 5, 2)

    assert handle is not None
    module, run = handle
    assert fake.init_kwargs["project"] == "demo"
    assert fake.init_kwargs["tags"] == ["a", "1"]
    assert fake.init_kwargs["dir"] == "/tmp/run"

    callback = wandb_logging.make_epoch_logger(module)
    callback(EpochRecord(epoch=1, loss=0.5, accuracy=0.75))
    assert fake.logged == [(1, {"epoch": 1, "train/loss": 0.5, "train/accuracy": 0.75})]

    wandb_logging.finalize_wandb_run(module, run, 0.9, failed=False)
    assert run.summary == {"test_accuracy": 0.9, "failed": False}
    assert fake.finished_with == 0


def test_log_failures_are_shielded():
    class Broken:
        def log(self, payload, step):
            raise RuntimeError("network down")

    wandb_logging.log_wandb_metrics(Broken(), {"epoch": 1}, step=1)

"""Tests for the ModelTrainer fit / evaluate / predict loop"""

import numpy as np
import pytest
import torch
from torch.utils.data import DataLoader

from ship_classifier.data.dataset import ShipsDataset
from ship_classifier.exceptions import ShapeError
from ship_classifier.models.ship_classifier import create_ship_classifier
from ship_classifier.training.trainer import ModelTrainer


def _loader(num_samples=16, batch_size=8, seed=0):
    rng = np.random.default_rng(seed)
    labels = np.array([i % 2 for i in range(num_samples)])
    images = rng.random((num_samples, 80, 80, 3)).astype(np.float32) * 0.5
    images[labels == 1] += 0.5
    return DataLoader(ShipsDataset(images, labels), batch_size=batch_size, shuffle=False)


@pytest.fixture
def trainer(tmp_path):
    torch.manual_seed(0)
    config = {
        'epochs': 2,
        'learning_rate': 1e-3,
        'optimizer': 'adam',
        'scheduler': 'cosine',
        'early_stopping_patience': 5,
        'max_checkpoints': 2,
        'progress_bar': False
    }
    trainer = ModelTrainer(
        model=create_ship_classifier('shipsnet_small'),
        train_loader=_loader(),
        val_loader=_loader(seed=1),
        config=config,
        device=torch.device('cpu'),
        checkpoint_dir=tmp_path / 'checkpoints',
        log_dir=tmp_path / 'logs'
    )
    yield trainer
    trainer.close()


@pytest.mark.integration
def test_fit_records_history(trainer):
    history = trainer.fit(2)

    assert len(history['train_loss']) == 2
    assert len(history['val_loss']) == 2
    assert len(history['val_accuracy']) == 2
    assert all(np.isfinite(history['train_loss']))
    assert 'val_confusion_matrix' not in history


@pytest.mark.integration
def test_fit_writes_checkpoints(trainer, tmp_path):
    trainer.fit(3)

    checkpoint_dir = tmp_path / 'checkpoints'
    assert (checkpoint_dir / 'best_model.pth').exists()
    assert (checkpoint_dir / 'checkpoint_history.json').exists()
    assert len(list(checkpoint_dir.glob('checkpoint_epoch_*.pth'))) == 2


@pytest.mark.integration
def test_evaluate_reports_metrics(trainer):
    trainer.fit(1)

    metrics = trainer.evaluate(_loader(seed=2))

    for key in ('loss', 'accuracy', 'precision', 'recall', 'f1_score', 'specificity', 'roc_auc'):
        assert key in metrics
    assert 0.0 <= metrics['accuracy'] <= 1.0
    assert np.array(metrics['confusion_matrix']).sum() == 16


@pytest.mark.unit
def test_predict_accepts_decoded_images(trainer):
    images = np.random.default_rng(5).random((5, 80, 80, 3)).astype(np.float32)

    probs = trainer.predict(images, batch_size=2)

    assert probs.shape == (5, 2)
    np.testing.assert_allclose(probs.sum(axis=1), np.ones(5), atol=1e-5)


@pytest.mark.unit
def test_predict_accepts_single_image(trainer):
    probs = trainer.predict(np.zeros((80, 80, 3), dtype=np.float32))

    assert probs.shape == (1, 2)


@pytest.mark.unit
def test_predict_rejects_wrong_shape(trainer):
    with pytest.raises(ShapeError):
        trainer.predict(np.zeros((2, 3, 80, 80), dtype=np.float32))


def _resumed_trainer(tmp_path, val_loader=None):
    return ModelTrainer(
        model=create_ship_classifier('shipsnet_small'),
        train_loader=_loader(),
        val_loader=val_loader,
        config={'epochs': 3, 'progress_bar': False, 'scheduler': 'cosine'},
        device=torch.device('cpu'),
        checkpoint_dir=tmp_path / 'checkpoints',
        log_dir=tmp_path / 'logs'
    )


@pytest.mark.integration
def test_resume_continues_from_last_epoch(trainer, tmp_path):
    trainer.fit(2)
    best_loss = trainer.early_stopping.get_best_metric()

    resumed = _resumed_trainer(tmp_path, val_loader=_loader(seed=1))
    info = resumed.resume()

    assert info['epoch'] == 2
    assert resumed.early_stopping.get_best_metric() == pytest.approx(best_loss)
    assert resumed.early_stopping.get_best_weights() is not None
    assert len(resumed.training_history['train_loss']) == 2

    history = resumed.fit(3)
    resumed.close()

    assert len(history['train_loss']) == 3
    assert len(history['val_loss']) == 3


@pytest.mark.integration
def test_resume_picks_up_interrupted_run(trainer, tmp_path):
    trainer.fit(1)
    trainer.current_epoch = 5

    path = trainer.save_interrupted_checkpoint()
    saved = torch.load(path, weights_only=False)

    assert saved['interrupted'] is True
    assert saved['scheduler_state_dict'] is not None
    assert saved['training_config']['scheduler'] == 'cosine'

    resumed = _resumed_trainer(tmp_path)
    info = resumed.resume()
    resumed.close()

    # the interrupted epoch 5 did not finish, so it is run again
    assert info['epoch'] == 5
    assert info['resume_from'].endswith('checkpoint_interrupted_epoch_005.pth')


@pytest.mark.integration
def test_save_training_plots(trainer, tmp_path):
    trainer.fit(1)

    curves = trainer.save_training_plots(tmp_path / 'plots')

    assert curves.exists()
    assert (tmp_path / 'plots' / 'confusion_matrix.png').exists()


@pytest.mark.unit
def test_unknown_optimizer_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        ModelTrainer(
            model=create_ship_classifier('shipsnet_small'),
            train_loader=_loader(),
            val_loader=None,
            config={'optimizer': 'lbfgs-ish'},
            device=torch.device('cpu'),
            checkpoint_dir=tmp_path / 'checkpoints',
            log_dir=tmp_path / 'logs'
        )

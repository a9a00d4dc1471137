import numpy as np
import pytest

from scratchnet.core.errors import ConfigurationError, ShapeMismatchError
from scratchnet.layers import Convolutional2d, Dense, Flatten, Input, Pooling2d


def _naive_correlate(x, weights, biases, padding, stride):
    filters, channels, kh, kw = weights.shape
    padded = np.pad(x, ((0, 0), (padding, padding), (padding, padding)))
    out_h = (padded.shape[1] - kh) // stride + 1
    out_w = (padded.shape[2] - kw) // stride + 1
    out = np.zeros((filters, out_h, out_w))
    for f in range(filters):
        for i in range(out_h):
            for j in range(out_w):
                window = padded[:, i * stride : i * stride + kh, j * stride : j * stride + kw]
                out[f, i, j] = np.sum(window * weights[f]) + biases[f]
    return out


@pytest.mark.parametrize(
    "layer, previous, expected",
    [
        (Input((1, 5, 5)), (1, 5, 5), (1, 5, 5)),
        (Input(4), 4, 4),
        (Flatten(), (2, 3, 4), 24),
        (Pooling2d((2, 2), 2, "max"), (3, 5, 5), (3, 2, 2)),
        (Pooling2d((3, 2), 1, "avg"), (2, 6, 4), (2, 4, 3)),
        (Dense(7, "relu"), 5, 7),
        (Convolutional2d(4, (3, 3), padding=1, stride=1), (2, 6, 6), (4, 6, 6)),
        (Convolutional2d(3, (3, 2), padding=0, stride=2), (1, 7, 6), (3, 3, 3)),
    ],
)
def test_forward_output_matches_declared_shape(layer, previous, expected):
    rng = np.random.default_rng(0)
    assert layer.initialize(previous, rng) == expected
    x = rng.standard_normal((previous,) if isinstance(previous, int) else previous)
    out = layer.forward(x)
    assert out.shape == ((expected,) if isinstance(expected, int) else expected)
    zeros = layer.forward(np.zeros_like(x))
    assert zeros.shape == out.shape


def test_flatten_round_trip_preserves_channel_row_col_order():
    layer = Flatten()
    layer.initialize((2, 3, 4))
    x = np.arange(24, dtype=np.float64).reshape(2, 3, 4)
    flat = layer.forward(x)
    assert flat[:4].tolist() == [0.0, 1.0, 2.0, 3.0]
    assert flat[12] == x[1, 0, 0]
    assert np.array_equal(layer.backward(flat), x)


def test_max_pooling_routes_gradient_to_argmax():
    rng = np.random.default_rng(4)
    layer = Pooling2d((2, 2), 2, "max")
    layer.initialize((2, 4, 4))
    x = rng.standard_normal((2, 4, 4))
    out = layer.forward(x)
    grad = layer.backward(rng.uniform(0.5, 1.5, size=out.shape))
    for c in range(2):
        for i in range(2):
            for j in range(2):
                window = x[c, 2 * i : 2 * i + 2, 2 * j : 2 * j + 2]
                g_window = grad[c, 2 * i : 2 * i + 2, 2 * j : 2 * j + 2]
                assert np.count_nonzero(g_window) == 1
                assert np.unravel_index(np.argmax(window), window.shape) == np.unravel_index(
                    np.argmax(np.abs(g_window)), g_window.shape
                )
                assert out[c, i, j] == window.max()
    assert layer.mask.sum() == out.size


def test_max_pooling_sums_overlapping_windows():
    layer = Pooling2d((2, 2), 1, "max")
    layer.initialize((1, 3, 3))
    x = np.zeros((1, 3, 3))
    x[0, 1, 1] = 5.0
    out = layer.forward(x)
    assert np.all(out == 5.0)
    grad = layer.backward(np.ones_like(out))
    assert grad[0, 1, 1] == 4.0
    assert grad.sum() == 4.0


def test_avg_pooling_spreads_gradient_evenly():
    layer = Pooling2d((2, 2), 2, "avg")
    layer.initialize((1, 4, 4))
    x = np.arange(16, dtype=np.float64).reshape(1, 4, 4)
    out = layer.forward(x)
    assert out[0, 0, 0] == pytest.approx((0 + 1 + 4 + 5) / 4)
    grad = layer.backward(np.array([[[4.0, 8.0], [0.0, 2.0]]]))
    assert np.allclose(grad[0, :2, :2], 1.0)
    assert np.allclose(grad[0, :2, 2:], 2.0)
    assert np.allclose(grad[0, 2:, :2], 0.0)
    assert np.allclose(grad[0, 2:, 2:], 0.5)


@pytest.mark.parametrize("padding, stride", [(0, 1), (1, 1), (1, 2), (2, 3)])
def test_convolution_forward_is_cross_correlation(padding, stride):
    rng = np.random.default_rng(1)
    layer = Convolutional2d(3, (3, 3), padding=padding, stride=stride, activation="sigmoid")
    layer.initialize((2, 7, 7), rng)
    layer.parameters.biases[:] = rng.standard_normal(3)
    x = rng.standard_normal((2, 7, 7))
    expected = _naive_correlate(x, layer.parameters.weights, layer.parameters.biases, padding, stride)
    out = layer.forward(x)
    assert np.allclose(layer._preactivation, expected)
    assert np.allclose(out, 1.0 / (1.0 + np.exp(-expected)))


def test_dense_forward_and_hidden_backward():
    layer = Dense(2, "relu")
    layer.initialize(3, np.random.default_rng(0))
    layer.parameters.data[:] = layer.parameters.pack(
        np.array([[1.0, -1.0, 0.5], [-2.0, 0.0, 1.0]]), np.array([0.5, -0.5])
    )
    x = np.array([1.0, 2.0, 3.0])
    out = layer.forward(x)
    assert np.allclose(out, [1.0, 0.5])
    result = layer.backward(np.array([2.0, 3.0]))
    assert np.allclose(result.biases, [2.0, 3.0])
    assert np.allclose(result.weights, np.outer([2.0, 3.0], x))
    assert np.allclose(result.gradient_wrt_input, [2.0 - 6.0, -2.0, 1.0 + 3.0])


def test_dense_relu_derivative_masks_inactive_units():
    layer = Dense(2, "relu")
    layer.initialize(1, np.random.default_rng(0))
    layer.parameters.data[:] = layer.parameters.pack(np.array([[1.0], [-1.0]]), np.zeros(2))
    layer.forward(np.array([1.0]))
    result = layer.backward(np.array([1.0, 1.0]))
    assert result.biases.tolist() == [1.0, 0.0]


def test_output_layer_uses_loss_directly_for_softmax():
    layer = Dense(3, "softmax")
    layer.initialize(2, np.random.default_rng(0))
    layer.forward(np.array([0.3, -0.2]))
    losses = np.array([0.1, -0.4, 0.3])
    assert np.array_equal(layer.output_layer_biases_gradient(losses), losses)
    assert np.allclose(layer.output_layer_weights_gradient(losses), np.outer(losses, [0.3, -0.2]))


def test_output_layer_applies_sigmoid_derivative():
    layer = Dense(1, "sigmoid")
    layer.initialize(1, np.random.default_rng(0))
    a = layer.forward(np.array([1.0]))
    grad = layer.output_layer_biases_gradient(np.array([0.5]))
    assert grad[0] == pytest.approx(0.5 * a[0] * (1 - a[0]))


def test_weight_initializers_respect_limits():
    rng = np.random.default_rng(0)
    relu = Dense(50, "relu")
    relu.initialize(20, rng)
    assert np.abs(relu.parameters.weights).max() <= np.sqrt(6 / 20)
    sigmoid = Dense(50, "sigmoid")
    sigmoid.initialize(20, rng)
    assert np.abs(sigmoid.parameters.weights).max() <= np.sqrt(6 / 70)
    assert np.all(sigmoid.parameters.biases == 0)
    conv = Convolutional2d(4, (3, 3))
    conv.initialize((2, 5, 5), rng)
    assert conv.parameters.weights.shape == (4, 2, 3, 3)
    assert np.abs(conv.parameters.weights).max() <= np.sqrt(6 / 18)


def test_unsupported_activation_fails_fast():
    with pytest.raises(ConfigurationError):
        Dense(3, "tanh")
    with pytest.raises(ConfigurationError):
        Convolutional2d(2, (3, 3), activation="softmax")
    with pytest.raises(ConfigurationError):
        Pooling2d((2, 2), 2, "median")


def test_shape_validation_at_initialize():
    rng = np.random.default_rng(0)
    with pytest.raises(ShapeMismatchError):
        Dense(3).initialize((1, 4, 4), rng)
    with pytest.raises(ShapeMismatchError):
        Convolutional2d(2, (3, 3)).initialize(16, rng)
    with pytest.raises(ShapeMismatchError):
        Pooling2d((4, 4), 1).initialize((1, 3, 3))
    with pytest.raises(ShapeMismatchError):
        Dense(3, input_shape=5).initialize(4, rng)
    flatten = Flatten()
    flatten.initialize((1, 2, 2))
    with pytest.raises(ShapeMismatchError):
        flatten.forward(np.zeros(3))


def test_input_rejects_wrong_tensor():
    layer = Input((1, 2, 2))
    with pytest.raises(ShapeMismatchError):
        layer.forward(np.zeros((2, 2)))
    with pytest.raises(RuntimeError, match="never flow back"):
        layer.backward(np.zeros((1, 2, 2)))


def test_import_weights_overwrites_and_checks_shape():
    layer = Dense(2, "sigmoid")
    weights = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    layer.import_weights(weights, np.array([0.1, 0.2]), 3)
    layer.import_weights(weights, np.array([0.1, 0.2]), 3)
    assert np.array_equal(layer.parameters.weights, weights)
    with pytest.raises(ShapeMismatchError):
        layer.import_weights(weights.T, np.array([0.1, 0.2]), 3)


@pytest.mark.parametrize(
    "layer, current, other, bad_weights, bad_biases",
    [
        (Dense(2, "sigmoid"), 3, 5, np.zeros((2, 3)), np.zeros(2)),
        (Convolutional2d(2, (3, 3)), (1, 4, 4), (3, 4, 4), np.zeros((2, 1, 3, 3)), np.zeros(2)),
    ],
)
def test_failed_import_leaves_layer_untouched(layer, current, other, bad_weights, bad_biases):
    layer.initialize(current, np.random.default_rng(0))
    before = layer.parameters.data.copy()
    shapes = layer.parameters.shape
    output_shape = layer.output_shape

    with pytest.raises(ShapeMismatchError):
        layer.import_weights(bad_weights, bad_biases, other)

    assert layer.input_shape == current
    assert layer.output_shape == output_shape
    assert layer.parameters.shape == shapes
    assert np.array_equal(layer.parameters.data, before)


def test_import_weights_with_new_input_shape_reshapes_layer():
    layer = Dense(2, "sigmoid")
    layer.initialize(3, np.random.default_rng(0))
    weights = np.arange(10, dtype=np.float64).reshape(2, 5)
    layer.import_weights(weights, np.ones(2), 5)
    assert layer.input_shape == 5
    assert np.array_equal(layer.parameters.weights, weights)

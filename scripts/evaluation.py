import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import argparse
import logging
import torch
from tqdm import tqdm

from models.deepspeech2 import DeepSpeech2
from utils.convert import to_channel_major, to_group_major, to_gate_block_layout
from utils.data_utils import NervanaExport
from utils.metrics import verify_outputs, calculate_wer, calculate_cer
from utils.tokenizer import CharTokenizer

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Load neon DeepSpeech2 weights and check the forward pass")
    parser.add_argument('--data_dir', type=str, required=True, help='directory holding the neon text export')
    parser.add_argument('--depth', type=int, default=6, help='number of bidirectional recurrent layers')
    parser.add_argument('--time_steps', type=int, default=None,
                        help='output sequence length of the reference file (default: model output length)')
    parser.add_argument('--conv_channels', type=int, default=1152)
    parser.add_argument('--n_features', type=int, default=13)
    parser.add_argument('--n_chars', type=int, default=29)
    parser.add_argument('--input_name', type=str, default='inputdata.txt')
    parser.add_argument('--output_name', type=str, default='output.txt')
    parser.add_argument('--conv_name', type=str, default='dp2conv.txt')
    parser.add_argument('--layer_prefix', type=str, default='layer', help='recurrent files are <prefix><i>.txt')
    parser.add_argument('--linear_prefix', type=str, default='linear', help='projection files are <prefix><i>.txt')
    parser.add_argument('--save_path', type=str, default=None, help='write the converted state_dict here')
    parser.add_argument('--transcript', type=str, default=None, help='reference text for WER/CER')
    parser.add_argument('--no_cuda', action='store_true')
    parser.add_argument('--log_level', type=str, default='INFO')
    return parser


def load_model(export, args):
    """Read every exported tensor, convert it and copy it into a fresh model."""
    hidden = args.conv_channels

    logger.info("load in conv weights ..")
    conv_weights = to_channel_major(export.conv_weights(), hidden)

    birnn_weights = []
    for i in tqdm(range(args.depth), desc="Loading BiRNN layers", ncols=100):
        birnn_weights.append(to_gate_block_layout(export.birnn_weights(i), hidden))

    logger.info("load in linear weights ..")
    linear0 = to_group_major(export.linear_weights(0), 2 * hidden)
    linear1 = to_group_major(export.linear_weights(1), hidden)

    model = DeepSpeech2(depth=args.depth, n_features=args.n_features, conv_channels=hidden,
                        kernel_size=(args.n_features, 11), n_chars=args.n_chars).double()
    model.reset()
    model.set_conv_weight(conv_weights)
    model.set_birnn_weight(birnn_weights)
    model.set_linear_weight(linear0, 0)
    model.set_linear_weight(linear1, 1)
    return model


def evaluate(args):
    use_cuda = torch.cuda.is_available() and not args.no_cuda
    device = torch.device('cuda' if use_cuda else 'cpu')

    export = NervanaExport(args.data_dir, input_name=args.input_name, output_name=args.output_name,
                           conv_name=args.conv_name, layer_prefix=args.layer_prefix,
                           linear_prefix=args.linear_prefix)

    logger.info("load in inputs and expectOutputs ..")
    inputs = export.inputs()
    expected = export.expected_outputs()
    if inputs.size % args.n_features != 0:
        raise ValueError(f"{inputs.size} input samples do not fill {args.n_features} feature rows")

    model = load_model(export, args)
    model.to(device)
    model.eval()

    logger.info("run the model ..")
    x = torch.as_tensor(inputs, dtype=torch.float64).reshape(1, 1, args.n_features, -1).to(device)
    with torch.no_grad():
        output = model(x)                    # [1, T, n_chars]

    time_steps = args.time_steps or output.size(1)
    acc_diff = verify_outputs(output.cpu().numpy(), to_channel_major(expected, time_steps))
    print("model inference finish!")
    print(f"total absolute error is : {acc_diff}")

    tokenizer = CharTokenizer()
    hypothesis = tokenizer.greedy_decode(output[0])
    print(f"decoded: {hypothesis!r}")
    if args.transcript is not None:
        wer = calculate_wer([args.transcript.upper()], [hypothesis])
        cer = calculate_cer([args.transcript.upper()], [hypothesis])
        print(f"WER: {wer * 100:.2f}%, CER: {cer * 100:.2f}%")

    if args.save_path:
        torch.save(model.state_dict(), args.save_path)
        print(f"converted weights saved to {args.save_path}")
    return acc_diff, hypothesis


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    evaluate(args)


if __name__ == '__main__':
    main()

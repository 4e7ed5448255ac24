import torch
import numpy as np

# neon's DeepSpeech2 output alphabet, blank first
NERVANA_ALPHABET = "_'ABCDEFGHIJKLMNOPQRSTUVWXYZ "


class CharTokenizer:

    def __init__(self, alphabet: str = NERVANA_ALPHABET, blank_id: int = 0):
        self.alphabet = alphabet
        self.blank_id = blank_id
        self.char_to_id = {c: i for i, c in enumerate(alphabet)}

    def text_to_ids(self, text: str):
        return [self.char_to_id[c] for c in text.upper() if c in self.char_to_id and c != self.alphabet[self.blank_id]]

    def ids_to_text(self, ids):
        if isinstance(ids, torch.Tensor):
            ids = ids.tolist()
        elif isinstance(ids, np.ndarray):
            ids = ids.tolist()
        if not isinstance(ids, list) or len(ids) == 0:
            return ""
        return "".join(self.alphabet[int(i)] for i in ids)

    def vocab_size(self):
        return len(self.alphabet)

    def id_to_token(self, id: int):
        return self.alphabet[id]

    def greedy_decode(self, logits):
        """Best-path CTC decoding of a single ``[T, vocab]`` score matrix."""
        if isinstance(logits, torch.Tensor):
            pred_ids = logits.argmax(dim=-1).cpu().numpy()
        else:
            pred_ids = np.asarray(logits).argmax(axis=-1)

        hyp_tokens = []
        prev_token = -1
        for token_id in pred_ids:
            if token_id == self.blank_id:
                prev_token = -1
                continue
            if token_id == prev_token:
                continue
            hyp_tokens.append(int(token_id))
            prev_token = token_id
        return self.ids_to_text(hyp_tokens).strip()

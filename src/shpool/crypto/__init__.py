"""Cryptographic primitives module"""

from shpool.crypto.field_hash import (
    BN254_PRIME,
    FieldHasher,
    Poseidon,
    get_field_hasher,
    set_field_hasher,
    run_self_test,
    load_vectors,
)

from shpool.crypto.ciphertext import (
    POOL_SALT,
    pool_salt,
    compute_ciphertext,
    decrypt_ciphertext,
)

__all__ = [
    'BN254_PRIME',
    'FieldHasher',
    'Poseidon',
    'get_field_hasher',
    'set_field_hasher',
    'run_self_test',
    'load_vectors',
    'POOL_SALT',
    'pool_salt',
    'compute_ciphertext',
    'decrypt_ciphertext',
]

'''
Functions for getting decoded .lxb files into pandas
dataframes, text files and SQLite databases.
'''
import cgatcore.experiment as E
import pandas as pd
import os
import re
import threading
import queue
import sqlite3 as sql
import pandas.io.sql as pdsql

from FlowLXB import LXBIO
from FlowLXB.LXBErrors import LXBFileError


def synchronized(func):
    '''
    A decorator that mimics the Java synchronized primitive.  It
    adds a lock to the decorated function

    code from http://theorangeduck.com/page/synchronized-python
    '''

    func.__lock__ = threading.Lock()

    def sync_func(*args, **kwargs):
        with func.__lock__:
            return func(*args, **kwargs)

    return sync_func


def text_to_series(key_words, strip_dollar=True):
    '''
    Convert TEXT keywords into a pandas Series, keeping
    file order

    Arguments
    ---------
    key_words: dict
      keyword: value pairs from an LXB TEXT segment

    strip_dollar: boolean
      remove the leading '$' from standard keywords

    Returns
    -------
    text: pandas.core.series.Series
      values indexed by keyword
    '''

    keys = []
    for key in key_words.keys():
        if strip_dollar and key.startswith("$"):
            key = key[1:]
        keys.append(key)

    return pd.Series(list(key_words.values()), index=keys, dtype=object)


def data_to_frame(lxb):
    '''
    Event matrix of an LXB object as a dataframe with one row
    per parameter, labelled from $PnN, and one column per event.
    None if the DATA segment was not decoded.
    '''

    if lxb.data is None:
        return None

    return pd.DataFrame(lxb.data,
                        index=pd.Index(lxb.labels, name="parameter"))


def read_lxb(lxb_file, text=True, strip_dollar=True):
    '''
    Read an .lxb file

    Arguments
    ---------
    lxb_file: str
      path to an .lxb file

    text: boolean
      attach the TEXT keywords to the output

    strip_dollar: boolean
      remove the leading '$' from TEXT keywords

    Returns
    -------
    out: dict
      "data" - pandas dataframe of parameters x events, or None
      if the DATA segment could not be decoded
      "text" - pandas series of TEXT keywords, only if `text`
    '''

    lxb = LXBIO.LXB(lxb_file)

    out = {"data": data_to_frame(lxb)}
    if text:
        out["text"] = text_to_series(lxb.key_words,
                                     strip_dollar=strip_dollar)

    return out


def read_lxb_directory(lxb_dir, pattern=None, text=True):
    '''
    Read every .lxb file in a directory, in name order.
    Files whose header or TEXT segment cannot be read are
    skipped with a warning.

    Arguments
    ---------
    lxb_dir: str
      directory containing .lxb files

    pattern: str
      regex, only read files whose name matches

    text: boolean
      attach the TEXT keywords to each output

    Yields
    ------
    (lxb_file, out): tuple
      file name and the output of `read_lxb`
    '''

    lxb_files = [lf for lf in sorted(os.listdir(lxb_dir))
                 if lf.lower().endswith(".lxb")]
    if pattern:
        lxb_files = [lf for lf in lxb_files if re.search(pattern, lf)]

    E.info("reading %i .lxb files from %s" % (len(lxb_files), lxb_dir))
    for lxb_file in lxb_files:
        try:
            out = read_lxb(os.path.join(lxb_dir, lxb_file), text=text)
        except LXBFileError as err:
            E.warn("skipping %s: %s" % (lxb_file, err))
            continue

        yield lxb_file, out


def read_lxb_files(lxb_files, threads=4):
    '''
    Decode several .lxb files on a pool of threads

    Arguments
    ---------
    lxb_files: list
      paths to .lxb files

    threads: int
      number of worker threads

    Returns
    -------
    lxbs: dict
      path: LXB object for every file that could be read.
      Unreadable files are logged and left out
    '''

    todo = queue.Queue()
    for lxb_file in lxb_files:
        todo.put(lxb_file)

    lxbs = {}
    lock = threading.Lock()

    def worker():
        while True:
            try:
                lxb_file = todo.get_nowait()
            except queue.Empty:
                return

            try:
                lxb = LXBIO.LXB(lxb_file)
            except LXBFileError as err:
                E.warn("could not read %s: %s" % (lxb_file, err))
                continue

            with lock:
                lxbs[lxb_file] = lxb

    workers = [threading.Thread(target=worker)
               for _ in range(max(1, threads))]
    for thread in workers:
        thread.start()
    for thread in workers:
        thread.join()

    E.info("decoded %i of %i .lxb files" % (len(lxbs), len(lxb_files)))
    return lxbs


def events_to_frame(lxb, sample_id):
    '''
    One row per event, one column per parameter plus the
    sample ID.  Parameters without a $PnN label are named
    by their index, e.g. P3.  Repeated labels get the index
    as a suffix, e.g. FL1_P4, since SQLite column names must
    be unique regardless of case.
    '''

    df = data_to_frame(lxb)
    if df is None:
        return None

    taken = set(["sample", "event"])
    columns = []
    for i, label in enumerate(lxb.labels):
        column = label or "P%i" % (i + 1)
        if column.lower() in taken:
            column = "%s_P%i" % (column, i + 1)
        taken.add(column.lower())
        columns.append(column)

    events = df.T
    events.columns = columns
    events.index.name = "event"
    events.insert(0, "sample", sample_id)

    return events


@synchronized
def load_lxb_db(db, table_name, lxb, sample_id):
    '''
    Load the events of an LXB object into an SQLite table,
    appending to the table if it already exists.

    Arguments
    ---------
    db: str
      path to an SQLite database

    table_name: str
      the table to write into

    lxb: FlowLXB.LXBIO.LXB
      a decoded .lxb file

    sample_id: str
      identifier stored in the `sample` column

    Returns
    -------
    value: boolean
      True if loaded, False if the file has no decoded DATA
    '''

    events = events_to_frame(lxb, sample_id)
    if events is None:
        E.warn("no decoded data for sample %s, not loaded" % sample_id)
        return False

    E.info("loading %i events from %s into %s" % (len(events), sample_id,
                                                  table_name))
    py_connect = sql.connect(db)
    try:
        events.to_sql(table_name, py_connect, if_exists="append")
    finally:
        py_connect.close()

    return True


def get_lxb_table(db, table_name, sample_id=None):
    '''
    Get events back out of an SQLite table written by
    `load_lxb_db`, optionally for a single sample
    '''

    py_connect = sql.connect(db)
    try:
        if sample_id is None:
            query = '''SELECT * FROM %s''' % table_name
            df = pdsql.read_sql(query, py_connect)
        else:
            query = '''SELECT * FROM %s WHERE sample = ?''' % table_name
            df = pdsql.read_sql(query, py_connect, params=(sample_id,))
    finally:
        py_connect.close()

    return df
